"""Layer 3: Tasks - User intent translation.

Tasks translate user intent into object creation and primitive calls.
Tasks must not import matplotlib or do file I/O.
"""

from geofold.tasks.crossvalidation import SpatialKFold, to_predefined_split
from geofold.tasks.spatialfoldtask import (
    SpatialFoldAssigner,
    spatial_fold_assignment,
)

__all__ = [
    "SpatialFoldAssigner",
    "SpatialKFold",
    "spatial_fold_assignment",
    "to_predefined_split",
]
