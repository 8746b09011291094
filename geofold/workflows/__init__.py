"""Layer 4: Workflows - Public entry points.

Workflows provide the public entry points users call: loading sample
tables, running a model through spatial folds and reporting distance
profiles. Put file loading here.
"""

from geofold.workflows.geodist import (
    nearest_neighbor_distance_profile,
    profile_divergence,
)
from geofold.workflows.io import read_sample_table
from geofold.workflows.validation import (
    CrossValidationResult,
    cross_validate_model,
    summarize_predictions,
)

__all__ = [
    "CrossValidationResult",
    "cross_validate_model",
    "nearest_neighbor_distance_profile",
    "profile_divergence",
    "read_sample_table",
    "summarize_predictions",
]
