"""Spatial cross-validation splitter for scikit-learn.

Layer 3: Tasks - User intent translation.

``SpatialKFold`` plugs a spatial fold assignment into anything that accepts
a scikit-learn ``cv`` argument: ``cross_val_score``, ``cross_val_predict``,
``GridSearchCV`` or ``SequentialFeatureSelector`` for forward feature
selection.
"""

import logging
from typing import Optional, Union

import numpy as np
from sklearn.model_selection import BaseCrossValidator, PredefinedSplit

from geofold.config import FoldSearchConfig
from geofold.objects.folds import FoldAssignment
from geofold.objects.pointset import PointSet
from geofold.tasks.spatialfoldtask import Domain, SpatialFoldAssigner
from geofold.utils.errors import raise_data_error

logger = logging.getLogger(__name__)


def to_predefined_split(assignment: FoldAssignment) -> PredefinedSplit:
    """Express a FoldAssignment as a scikit-learn ``PredefinedSplit``."""
    return PredefinedSplit(test_fold=np.asarray(assignment.fold_ids))


class SpatialKFold(BaseCrossValidator):
    """K-fold splitter whose folds come from spatial fold assignment.

    The sample coordinates and prediction domain are given up front; the
    rows of ``X`` passed to ``split`` must be in the same order as the
    coordinates. The assignment is computed on first use and reused for
    every later ``split`` call.

    Example:
        >>> import numpy as np
        >>> from sklearn.ensemble import RandomForestRegressor
        >>> from sklearn.model_selection import cross_val_score
        >>> from geofold import PolygonSet
        >>> from geofold.tasks.crossvalidation import SpatialKFold
        >>>
        >>> rng = np.random.default_rng(0)
        >>> coords = rng.uniform(0, 100, size=(80, 2))
        >>> X = rng.normal(size=(80, 3))
        >>> y = X[:, 0] + rng.normal(scale=0.1, size=80)
        >>> cv = SpatialKFold(coords, PolygonSet.from_bounds(0, 0, 100, 100))
        >>> scores = cross_val_score(RandomForestRegressor(), X, y, cv=cv)
        >>> len(scores)
        5
    """

    def __init__(
        self,
        coordinates: Union[PointSet, np.ndarray],
        domain: Domain,
        n_splits: int = 5,
        config: Optional[FoldSearchConfig] = None,
    ) -> None:
        self.coordinates = coordinates
        self.domain = domain
        self.n_splits = n_splits
        self.config = config
        self._assignment: Optional[FoldAssignment] = None

    @property
    def assignment(self) -> FoldAssignment:
        """The fold assignment, computed on first access."""
        if self._assignment is None:
            assigner = SpatialFoldAssigner(self.config)
            self._assignment = assigner.assign(
                self.coordinates, self.domain, self.n_splits
            )
        return self._assignment

    def _check_length(self, X) -> None:
        if X is None:
            return
        n_rows = len(X)
        if n_rows != self.assignment.n_samples:
            raise_data_error(
                "X must have one row per sample coordinate",
                expected=str(self.assignment.n_samples),
                received=str(n_rows),
            )

    def _iter_test_indices(self, X=None, y=None, groups=None):
        self._check_length(X)
        for fold in self.assignment:
            yield fold.test

    def split(self, X, y=None, groups=None):
        """Yield (train, test) index arrays for each spatial fold."""
        self._check_length(X)
        yield from self.assignment.split()

    def get_n_splits(self, X=None, y=None, groups=None) -> int:
        return self.n_splits
