"""Layer 2: Primitives - Algorithm interfaces and pure operations.

This layer holds pure operations on numpy arrays and layer-1 objects:
domain geometry (shapely), nearest-neighbour distances (scipy,
scikit-learn), divergence statistics and the fold search. No file I/O.
"""

from geofold.primitives.clustering import (
    DistinctLocations,
    LocationClusterer,
    canonical_labels,
    count_split_groups,
    separated_groups,
)
from geofold.primitives.distances import (
    DistanceMatrix,
    clustering_coordinates,
    nearest_distances,
)
from geofold.primitives.divergence import distribution_divergence
from geofold.primitives.fold_search import (
    Candidate,
    SearchResult,
    candidate_cluster_counts,
    merge_clusters_into_folds,
    score_candidate,
    search_fold_assignment,
    select_candidate,
)
from geofold.primitives.geometry import (
    points_in_domain,
    sample_domain,
    to_shapely,
    validate_domain_geometry,
)

__all__ = [
    "Candidate",
    "DistanceMatrix",
    "DistinctLocations",
    "LocationClusterer",
    "SearchResult",
    "canonical_labels",
    "candidate_cluster_counts",
    "clustering_coordinates",
    "count_split_groups",
    "distribution_divergence",
    "merge_clusters_into_folds",
    "nearest_distances",
    "points_in_domain",
    "sample_domain",
    "score_candidate",
    "search_fold_assignment",
    "select_candidate",
    "separated_groups",
    "to_shapely",
    "validate_domain_geometry",
]
