"""Polygon collections describing the prediction domain."""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from geofold.utils.errors import raise_data_error


def _ring_area(ring: np.ndarray) -> float:
    """Signed shoelace area of a ring (closing vertex optional)."""
    x, y = ring[:, 0], ring[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


@dataclass(frozen=True, eq=False)
class PolygonSet:
    """One or more polygons, each an exterior ring plus optional holes.

    Attributes:
        rings: Sequence of polygons. Each polygon is a sequence of rings,
            the first being the exterior and any others holes. Each ring is
            an array of shape (n_vertices, 2).
        crs: Optional coordinate reference system label.

    Example:
        >>> from geofold import PolygonSet
        >>> square = PolygonSet.from_bounds(0, 0, 100, 100)
        >>> square.area
        10000.0
    """

    rings: Sequence[Sequence[np.ndarray]]
    crs: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate and freeze ring arrays."""
        polygons = []
        for i, polygon in enumerate(self.rings):
            if isinstance(polygon, np.ndarray) and polygon.ndim == 2:
                polygon = [polygon]
            frozen = []
            for ring in polygon:
                ring = np.array(ring, dtype=np.float64, copy=True)
                if ring.ndim != 2 or ring.shape[1] != 2:
                    raise_data_error(
                        f"Ring of polygon {i} must have shape (n_vertices, 2)",
                        received=str(ring.shape),
                    )
                if not np.all(np.isfinite(ring)):
                    raise_data_error(
                        f"Ring of polygon {i} contains NaN or infinite values"
                    )
                ring.flags.writeable = False
                frozen.append(ring)
            if not frozen:
                raise_data_error(f"Polygon {i} has no rings")
            polygons.append(tuple(frozen))
        object.__setattr__(self, "rings", tuple(polygons))

    @classmethod
    def from_bounds(
        cls,
        minx: float,
        miny: float,
        maxx: float,
        maxy: float,
        crs: Optional[str] = None,
    ) -> "PolygonSet":
        """Build a single rectangular polygon from a bounding box."""
        ring = np.array(
            [[minx, miny], [maxx, miny], [maxx, maxy], [minx, maxy]],
            dtype=np.float64,
        )
        return cls(rings=[[ring]], crs=crs)

    def __len__(self) -> int:
        return len(self.rings)

    @property
    def is_empty(self) -> bool:
        return len(self.rings) == 0

    @property
    def area(self) -> float:
        """Total area: exterior areas minus hole areas."""
        total = 0.0
        for polygon in self.rings:
            exterior, holes = polygon[0], polygon[1:]
            total += abs(_ring_area(exterior))
            total -= sum(abs(_ring_area(h)) for h in holes)
        return total

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Bounding box as (minx, miny, maxx, maxy)."""
        if self.is_empty:
            raise_data_error("bounds of an empty PolygonSet are undefined")
        vertices = np.vstack([polygon[0] for polygon in self.rings])
        minx, miny = vertices.min(axis=0)
        maxx, maxy = vertices.max(axis=0)
        return float(minx), float(miny), float(maxx), float(maxy)

    def __repr__(self) -> str:
        """String representation."""
        n_holes = sum(len(polygon) - 1 for polygon in self.rings)
        return f"PolygonSet(n_polygons={len(self)}, n_holes={n_holes})"
