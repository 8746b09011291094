"""GeoFold: spatial fold assignment for spatial cross-validation.

The package is organised in four layers:

1. ``geofold.objects`` - immutable data (PointSet, PolygonSet, FoldAssignment)
2. ``geofold.primitives`` - pure operations (distances, clustering, fold search)
3. ``geofold.tasks`` - user intent (SpatialFoldAssigner, SpatialKFold)
4. ``geofold.workflows`` - entry points (table loading, per-fold validation)
"""

import logging

from geofold.config import ConfigManager, FoldSearchConfig, get_config, load_config
from geofold.objects import Fold, FoldAssignment, PointSet, PolygonSet
from geofold.tasks import (
    SpatialFoldAssigner,
    SpatialKFold,
    spatial_fold_assignment,
    to_predefined_split,
)
from geofold.utils.errors import (
    ConvergenceWarning,
    DataValidationError,
    GeoFoldError,
    InputError,
    ParameterError,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ConfigManager",
    "ConvergenceWarning",
    "DataValidationError",
    "Fold",
    "FoldAssignment",
    "FoldSearchConfig",
    "GeoFoldError",
    "InputError",
    "ParameterError",
    "PointSet",
    "PolygonSet",
    "SpatialFoldAssigner",
    "SpatialKFold",
    "get_config",
    "load_config",
    "spatial_fold_assignment",
    "to_predefined_split",
]
