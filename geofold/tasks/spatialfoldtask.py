"""Spatial fold assignment task.

Layer 3: Tasks - User intent translation.

Turns "give me k spatial CV folds for these samples and this prediction
area" into domain sampling, distance bookkeeping and the fold search.
"""

import logging
import numbers
import warnings
from typing import Any, Optional, Union

import numpy as np
from shapely.geometry.base import BaseGeometry

from geofold.config import FoldSearchConfig
from geofold.objects.folds import FoldAssignment
from geofold.objects.pointset import PointSet
from geofold.objects.polygonset import PolygonSet
from geofold.primitives.clustering import DistinctLocations, LocationClusterer
from geofold.primitives.distances import DistanceMatrix, nearest_distances
from geofold.primitives.fold_search import search_fold_assignment
from geofold.primitives.geometry import (
    points_in_domain,
    sample_domain,
    to_shapely,
    validate_domain_geometry,
)
from geofold.utils.errors import (
    ConvergenceWarning,
    InputError,
    raise_data_error,
    raise_option_error,
)

logger = logging.getLogger(__name__)

Domain = Union[PolygonSet, PointSet, BaseGeometry]


def _as_pointset(samples: Union[PointSet, np.ndarray]) -> PointSet:
    if isinstance(samples, PointSet):
        return samples
    return PointSet(coordinates=samples)


def _validate_n_folds(k: Any) -> int:
    if isinstance(k, bool) or not isinstance(k, numbers.Integral):
        raise_option_error("k", k, constraint="k must be an integer >= 2")
    if k < 2:
        raise_option_error(
            "k",
            k,
            constraint="k must be >= 2",
            suggestion="Use at least two folds; k=1 leaves nothing to train on",
        )
    return int(k)


class SpatialFoldAssigner:
    """Assign samples to k spatial cross-validation folds.

    The folds are chosen so that the distance from each held-out sample to
    its nearest training sample is distributed like the distance from
    locations in the prediction domain to their nearest sample. A model
    validated on these folds is then tested under the same spatial
    conditions it will face when predicting over the domain.

    Assignment is a pure function of (samples, domain, k, config): repeated
    calls return identical folds, whatever ``n_jobs`` is.

    Example:
        >>> import numpy as np
        >>> from geofold import PolygonSet, SpatialFoldAssigner
        >>>
        >>> rng = np.random.default_rng(1)
        >>> coords = rng.uniform(0, 100, size=(60, 2))
        >>> domain = PolygonSet.from_bounds(0, 0, 100, 100)
        >>> assignment = SpatialFoldAssigner().assign(coords, domain, k=5)
        >>> assignment.n_folds
        5
        >>> for train, test in assignment.split():
        ...     pass  # fit on train, evaluate on test
    """

    def __init__(
        self,
        config: Optional[FoldSearchConfig] = None,
        **options: Any,
    ) -> None:
        """Initialize the assigner.

        Args:
            config: Search options. Defaults to the ``fold_search`` section
                of the process-wide config.
            **options: Individual options overriding ``config``
                (e.g. ``statistic="wasserstein"``, ``n_jobs=4``).
        """
        base = config if config is not None else FoldSearchConfig.from_config()
        self.config = base.replace(**options) if options else base

    def target_distances(
        self,
        samples: PointSet,
        domain: Domain,
    ) -> np.ndarray:
        """Distances from prediction locations in ``domain`` to the nearest sample.

        Raises:
            InputError: If the domain is empty or degenerate, or (with
                ``outside_domain='raise'``) a sample lies outside it.
        """
        reference = self._reference_points(samples, domain)
        return nearest_distances(
            reference.coordinates, samples.coordinates, self.config.metric
        )

    def _reference_points(self, samples: PointSet, domain: Domain) -> PointSet:
        if isinstance(domain, PointSet):
            if len(domain) == 0:
                raise_data_error(
                    "Domain reference point set is empty",
                    suggestion="Pass prediction locations or a domain polygon",
                )
            return domain

        if not isinstance(domain, (PolygonSet, BaseGeometry)):
            raise_data_error(
                "domain must be a PolygonSet, PointSet or shapely geometry",
                received=type(domain).__name__,
            )
        if isinstance(domain, PolygonSet) and domain.is_empty:
            raise_data_error("Domain PolygonSet contains no polygons")

        geometry = validate_domain_geometry(to_shapely(domain))
        inside = points_in_domain(samples, geometry)
        n_outside = int((~inside).sum())
        if n_outside:
            if self.config.outside_domain == "raise":
                raise InputError(
                    f"{n_outside} of {len(samples)} samples lie outside the domain",
                    suggestion=(
                        "Enlarge the domain, drop those samples, or use "
                        "outside_domain='include'"
                    ),
                    details={"outside": np.flatnonzero(~inside).tolist()},
                )
            logger.warning(
                f"{n_outside} of {len(samples)} samples lie outside the domain; "
                "they are kept in the nearest-neighbour distance pool"
            )

        return sample_domain(
            geometry,
            n_points=self.config.n_domain_points,
            method=self.config.domain_sampling,
            random_state=self.config.random_state,
        )

    def assign(
        self,
        samples: Union[PointSet, np.ndarray],
        domain: Domain,
        k: int,
    ) -> FoldAssignment:
        """Partition samples into ``k`` spatial folds.

        Args:
            samples: Sample locations as a PointSet or (n, 2) array. The
                position of a sample is its index in the returned folds.
            domain: Prediction domain as a PolygonSet or shapely polygon, or
                a PointSet of pre-sampled prediction locations.
            k: Number of folds, at least 2.

        Returns:
            FoldAssignment with k folds, the achieved divergence and the
            target/realised distance samples.

        Raises:
            InputError: If k < 2, there are fewer than 2 or fewer than k
                distinct sample locations, or the domain is empty or
                degenerate.

        Warns:
            ConvergenceWarning: If the best divergence exceeds
                ``config.tolerance``.
        """
        config = self.config
        n_folds = _validate_n_folds(k)
        samples = _as_pointset(samples)

        locations = DistinctLocations.from_coordinates(samples.coordinates)
        n_locations = len(locations)
        if n_locations < 2:
            raise_data_error(
                "Spatial folds need at least 2 distinct sample locations",
                received=f"{n_locations} distinct location(s)",
            )
        if n_folds > n_locations:
            raise_data_error(
                f"k={n_folds} exceeds the number of distinct sample locations",
                expected=f"k <= {n_locations}",
                received=f"k={n_folds}",
                suggestion="Reduce k; samples sharing a location share a fold",
            )

        target = self.target_distances(samples, domain)
        matrix = DistanceMatrix.from_coordinates(locations.coordinates, config.metric)
        clusterer = LocationClusterer(
            locations,
            method=config.clustering,
            metric=config.metric,
            random_state=config.random_state,
        )

        result = search_fold_assignment(
            clusterer,
            matrix,
            target,
            n_folds,
            statistic=config.statistic,
            max_candidates=config.max_candidates,
            patience=config.patience,
            divergence_tolerance=config.divergence_tolerance,
            n_jobs=config.n_jobs,
        )
        best = result.best
        logger.info(
            f"Selected {n_folds} folds from {best.n_clusters} clusters "
            f"({config.statistic}={best.divergence:.4f}, "
            f"{result.n_scored}/{result.n_planned} candidates scored)"
        )

        if best.divergence > config.tolerance:
            message = (
                f"Fold search did not reach {config.statistic} <= "
                f"{config.tolerance} (best {best.divergence:.4f} after "
                f"{result.n_scored} candidates); returning the best assignment"
            )
            logger.warning(message)
            warnings.warn(message, ConvergenceWarning, stacklevel=2)

        return FoldAssignment(
            fold_ids=best.fold_ids,
            divergence=best.divergence,
            statistic=config.statistic,
            n_clusters=best.n_clusters,
            target_distances=target,
            realized_distances=best.realized_distances,
        )


def spatial_fold_assignment(
    samples: Union[PointSet, np.ndarray],
    domain: Domain,
    k: int,
    config: Optional[FoldSearchConfig] = None,
    **options: Any,
) -> FoldAssignment:
    """Functional shortcut for ``SpatialFoldAssigner(config, **options).assign``.

    Example:
        >>> from geofold import PolygonSet, spatial_fold_assignment
        >>> import numpy as np
        >>> coords = np.random.default_rng(0).uniform(0, 10, size=(30, 2))
        >>> folds = spatial_fold_assignment(
        ...     coords, PolygonSet.from_bounds(0, 0, 10, 10), k=3,
        ...     statistic="wasserstein", tolerance=10.0,
        ... )
        >>> folds.n_samples
        30
    """
    return SpatialFoldAssigner(config, **options).assign(samples, domain, k)
