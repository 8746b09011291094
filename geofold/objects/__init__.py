"""Layer 1: Objects - Immutable data representations.

This layer contains only data structures. No shapely, no scipy, no
scikit-learn. Only standard library + numpy + pandas.
"""

from geofold.objects.folds import Fold, FoldAssignment
from geofold.objects.pointset import PointSet
from geofold.objects.polygonset import PolygonSet

__all__ = [
    "Fold",
    "FoldAssignment",
    "PointSet",
    "PolygonSet",
]
