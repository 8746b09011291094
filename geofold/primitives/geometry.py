"""Domain geometry operations.

Converts PolygonSet domains to shapely geometries, tests sample containment
and draws prediction locations from a domain.
"""

import logging
import math
from typing import Union

import numpy as np
import shapely
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from geofold.objects.pointset import PointSet
from geofold.objects.polygonset import PolygonSet
from geofold.utils.errors import (
    DataValidationError,
    raise_data_error,
    raise_option_error,
)

logger = logging.getLogger(__name__)

DomainLike = Union[PolygonSet, PointSet, BaseGeometry]

_MAX_REFINEMENTS = 12
_MAX_DRAWS = 100


def to_shapely(domain: Union[PolygonSet, BaseGeometry]) -> BaseGeometry:
    """Convert a PolygonSet to a shapely (Multi)Polygon.

    Shapely geometries are passed through unchanged.
    """
    if isinstance(domain, BaseGeometry):
        return domain
    try:
        polygons = [
            Polygon(shell=rings[0], holes=rings[1:]) for rings in domain.rings
        ]
    except (ValueError, GEOSException) as exc:
        raise DataValidationError(
            f"Domain polygon could not be built: {exc}",
            suggestion="Each ring needs at least 3 distinct vertices",
        ) from exc
    if not polygons:
        return Polygon()
    if len(polygons) == 1:
        return polygons[0]
    return MultiPolygon(polygons)


def validate_domain_geometry(geometry: BaseGeometry) -> BaseGeometry:
    """Check that a domain geometry is usable, repairing invalid rings.

    Raises:
        DataValidationError: If the geometry is empty or has zero area.
    """
    if geometry.is_empty:
        raise_data_error(
            "Domain geometry is empty",
            suggestion="Pass the polygon(s) of the prediction area",
        )
    if not geometry.is_valid:
        logger.warning("Domain geometry is invalid; repairing with make_valid")
        geometry = shapely.make_valid(geometry)
    if geometry.area <= 0:
        raise_data_error(
            "Domain geometry is degenerate (zero area)",
            received=geometry.geom_type,
        )
    return geometry


def points_in_domain(points: PointSet, geometry: BaseGeometry) -> np.ndarray:
    """Boolean mask of points inside or on the boundary of the domain."""
    if len(points) == 0:
        return np.zeros(0, dtype=bool)
    return np.asarray(shapely.intersects_xy(geometry, points.x, points.y), dtype=bool)


def regular_domain_points(geometry: BaseGeometry, n_points: int) -> np.ndarray:
    """Regular grid of about ``n_points`` cell centres inside the domain.

    The grid spacing is derived from the domain area. Narrow domains that
    catch too few cell centres get a finer grid.
    """
    minx, miny, maxx, maxy = geometry.bounds
    spacing = math.sqrt(geometry.area / n_points)
    coords = np.empty((0, 2))
    for _ in range(_MAX_REFINEMENTS):
        xs = np.arange(minx + spacing / 2, maxx, spacing)
        ys = np.arange(miny + spacing / 2, maxy, spacing)
        gx, gy = np.meshgrid(xs, ys)
        gx, gy = gx.ravel(), gy.ravel()
        inside = shapely.intersects_xy(geometry, gx, gy)
        coords = np.column_stack([gx[inside], gy[inside]])
        if len(coords) >= n_points // 2 and len(coords) > 0:
            break
        spacing /= math.sqrt(2)
    return coords


def random_domain_points(
    geometry: BaseGeometry,
    n_points: int,
    random_state: int = 0,
) -> np.ndarray:
    """Uniform random points inside the domain by rejection sampling."""
    rng = np.random.default_rng(random_state)
    minx, miny, maxx, maxy = geometry.bounds
    box_area = (maxx - minx) * (maxy - miny)
    batch = max(int(1.2 * n_points * box_area / geometry.area), 16)

    accepted = []
    n_accepted = 0
    for _ in range(_MAX_DRAWS):
        x = rng.uniform(minx, maxx, batch)
        y = rng.uniform(miny, maxy, batch)
        inside = shapely.intersects_xy(geometry, x, y)
        accepted.append(np.column_stack([x[inside], y[inside]]))
        n_accepted += int(inside.sum())
        if n_accepted >= n_points:
            break
    return np.vstack(accepted)[:n_points]


def sample_domain(
    domain: Union[PolygonSet, BaseGeometry],
    n_points: int = 1000,
    method: str = "regular",
    random_state: int = 0,
) -> PointSet:
    """Draw prediction locations covering a domain.

    Args:
        domain: PolygonSet or shapely polygonal geometry.
        n_points: Approximate number of locations to draw.
        method: 'regular' grid or 'random' uniform draw.
        random_state: Seed for the random draw.

    Returns:
        PointSet of locations inside the domain.

    Example:
        >>> from geofold import PolygonSet
        >>> from geofold.primitives.geometry import sample_domain
        >>> square = PolygonSet.from_bounds(0, 0, 10, 10)
        >>> len(sample_domain(square, n_points=100))
        100
    """
    geometry = validate_domain_geometry(to_shapely(domain))
    if method == "regular":
        coords = regular_domain_points(geometry, n_points)
    elif method == "random":
        coords = random_domain_points(geometry, n_points, random_state)
    else:
        raise_option_error("method", method, valid_values=["regular", "random"])

    if len(coords) == 0:
        raise_data_error(
            "Could not place any prediction location inside the domain",
            suggestion="Increase n_points or check the domain geometry",
        )
    logger.debug(f"Sampled {len(coords)} domain points ({method})")
    crs = domain.crs if isinstance(domain, PolygonSet) else None
    return PointSet(coordinates=coords, crs=crs)
