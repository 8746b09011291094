"""Nearest-neighbour distance profiles for reporting fold quality.

Layer 4: Workflows - Public entry points.

Three distributions describe how well cross-validation mimics prediction:

* ``sample-to-sample``: each sample to its nearest other sample (what
  random k-fold CV roughly tests on);
* ``prediction-to-sample``: each prediction location to its nearest sample
  (what the model faces when mapping the domain);
* ``CV-distances``: each held-out sample to its nearest training sample
  under a given fold assignment.
"""

import logging
from typing import Optional, Union

import numpy as np
import pandas as pd

from geofold.config import FoldSearchConfig
from geofold.objects.folds import FoldAssignment
from geofold.objects.pointset import PointSet
from geofold.primitives.clustering import DistinctLocations
from geofold.primitives.distances import DistanceMatrix
from geofold.primitives.divergence import distribution_divergence
from geofold.tasks.spatialfoldtask import Domain, SpatialFoldAssigner
from geofold.utils.errors import raise_data_error

logger = logging.getLogger(__name__)

SAMPLE_TO_SAMPLE = "sample-to-sample"
PREDICTION_TO_SAMPLE = "prediction-to-sample"
CV_DISTANCES = "CV-distances"


def nearest_neighbor_distance_profile(
    samples: Union[PointSet, np.ndarray],
    domain: Domain,
    assignment: Optional[FoldAssignment] = None,
    config: Optional[FoldSearchConfig] = None,
) -> pd.DataFrame:
    """Long table of nearest-neighbour distances by distribution.

    Args:
        samples: Sample locations.
        domain: Prediction domain (polygons or prediction locations).
        assignment: Optional fold assignment; adds ``CV-distances`` rows.
        config: Options for domain sampling and the distance metric.

    Returns:
        DataFrame with columns ``distance`` and ``what``.

    Example:
        >>> profile = nearest_neighbor_distance_profile(coords, domain, folds)
        >>> profile.groupby("what")["distance"].median()
    """
    assigner = SpatialFoldAssigner(config)
    if not isinstance(samples, PointSet):
        samples = PointSet(coordinates=samples)
    if len(samples) < 2:
        raise_data_error("Distance profiles need at least 2 samples")

    # Self-distances count as zero for duplicated coordinates.
    locations = DistinctLocations.from_coordinates(samples.coordinates)
    matrix = DistanceMatrix.from_coordinates(
        locations.coordinates, assigner.config.metric
    )
    nn_by_location = matrix.nearest_neighbor()
    duplicated = locations.counts[locations.sample_location] > 1
    sample_to_sample = np.where(
        duplicated, 0.0, nn_by_location[locations.sample_location]
    )

    parts = [
        pd.DataFrame({"distance": sample_to_sample, "what": SAMPLE_TO_SAMPLE}),
        pd.DataFrame(
            {
                "distance": assigner.target_distances(samples, domain),
                "what": PREDICTION_TO_SAMPLE,
            }
        ),
    ]

    if assignment is not None:
        if assignment.n_samples != len(samples):
            raise_data_error(
                "assignment does not match the samples",
                expected=f"{len(samples)} samples",
                received=f"{assignment.n_samples} samples",
            )
        cv = assignment.realized_distances
        if cv is None:
            cv = DistanceMatrix.from_coordinates(
                samples.coordinates, assigner.config.metric
            ).nearest_outside(assignment.fold_ids)
        parts.append(pd.DataFrame({"distance": cv, "what": CV_DISTANCES}))

    profile = pd.concat(parts, ignore_index=True)
    profile["what"] = pd.Categorical(
        profile["what"],
        categories=[SAMPLE_TO_SAMPLE, PREDICTION_TO_SAMPLE, CV_DISTANCES],
    )
    return profile


def profile_divergence(
    profile: pd.DataFrame,
    statistic: str = "ks",
) -> pd.Series:
    """Divergence of each distribution from ``prediction-to-sample``."""
    target = profile.loc[profile["what"] == PREDICTION_TO_SAMPLE, "distance"]
    result = {}
    for what in (SAMPLE_TO_SAMPLE, CV_DISTANCES):
        values = profile.loc[profile["what"] == what, "distance"]
        if len(values):
            result[what] = distribution_divergence(
                values.to_numpy(), target.to_numpy(), statistic
            )
    return pd.Series(result, name=statistic)
