"""Search for a spatial fold assignment matching prediction distances.

Candidates are produced by clustering the distinct sample locations into
``q`` groups (``k <= q <= n_locations``) and merging the groups into ``k``
folds of near-equal size. Each candidate is scored by the divergence between

* the *realised* distances: every sample to the nearest sample of another
  fold (its nearest training point when it is held out), and
* the *target* distances: every prediction location in the domain to the
  nearest sample.

Coarse clusterings hold out whole regions and produce long realised
distances; fine clusterings approach random k-fold and produce short ones.
The search keeps the candidate whose realised distribution best matches the
target, among the candidates that split the fewest separated groups (tight
groups of locations far from every other sample).
"""

import logging
from dataclasses import dataclass
from multiprocessing.pool import ThreadPool
from typing import Optional

import numpy as np

from geofold.primitives.clustering import (
    DistinctLocations,
    LocationClusterer,
    canonical_labels,
    count_split_groups,
    separated_groups,
)
from geofold.primitives.distances import DistanceMatrix
from geofold.primitives.divergence import distribution_divergence

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Candidate:
    """A scored candidate fold assignment.

    Attributes:
        n_clusters: Cluster count the candidate was built from.
        fold_ids: Canonical fold index of every sample.
        divergence: Divergence from the target distribution.
        imbalance: Largest minus smallest fold size.
        realized_distances: Held-out to nearest-training distance per sample.
        n_split_groups: Separated groups spread over more than one fold.
    """

    n_clusters: int
    fold_ids: np.ndarray
    divergence: float
    imbalance: int
    realized_distances: np.ndarray
    n_split_groups: int = 0

    def __repr__(self) -> str:
        return (
            f"Candidate(n_clusters={self.n_clusters}, "
            f"divergence={self.divergence:.4f}, imbalance={self.imbalance}, "
            f"split_groups={self.n_split_groups})"
        )


@dataclass(frozen=True)
class SearchResult:
    """Best candidate plus bookkeeping of the search."""

    best: Candidate
    n_scored: int
    n_planned: int
    stopped_early: bool


def candidate_cluster_counts(
    n_folds: int,
    n_locations: int,
    max_candidates: int,
) -> list[int]:
    """Ascending cluster counts from ``n_folds`` to ``n_locations``.

    When the full range exceeds ``max_candidates`` it is thinned evenly,
    always keeping both end points.
    """
    full = n_locations - n_folds + 1
    if full <= max_candidates:
        return list(range(n_folds, n_locations + 1))
    counts = np.unique(
        np.round(np.linspace(n_folds, n_locations, max_candidates)).astype(int)
    )
    return counts.tolist()


def merge_clusters_into_folds(
    cluster_labels: np.ndarray,
    counts: np.ndarray,
    coordinates: np.ndarray,
    n_folds: int,
    groups: Optional[list[np.ndarray]] = None,
) -> np.ndarray:
    """Merge location clusters into ``n_folds`` folds of near-equal size.

    Fold capacities are ``floor(n/k)`` or ``ceil(n/k)`` samples. Clusters
    are placed largest first (ties: lowest location index) into the fold
    with the most remaining capacity (ties: lowest fold index). A cluster
    that does not fit is split; its locations are placed in order of
    distance from its first location so the pieces stay compact. Locations
    of one separated group move together while a fold has room for them.

    Args:
        cluster_labels: Cluster label per distinct location.
        counts: Number of samples per distinct location.
        coordinates: Location coordinates used to order split clusters.
        n_folds: Number of folds (``<= len(counts)``).
        groups: Separated groups of locations to keep in one fold.

    Returns:
        Fold index per distinct location; every fold is non-empty.
    """
    counts = np.asarray(counts, dtype=np.int64)
    n_samples = int(counts.sum())
    remaining = np.full(n_folds, n_samples // n_folds, dtype=np.int64)
    remaining[: n_samples % n_folds] += 1

    group_of = np.full(len(counts), -1, dtype=np.int64)
    for g, group in enumerate(groups or []):
        group_of[group] = g

    location_fold = np.full(len(counts), -1, dtype=np.int64)
    clusters = [
        np.flatnonzero(cluster_labels == label) for label in np.unique(cluster_labels)
    ]
    clusters.sort(key=lambda members: (-int(counts[members].sum()), int(members[0])))

    for members in clusters:
        size = int(counts[members].sum())
        target = int(np.argmax(remaining))
        if size <= remaining[target]:
            location_fold[members] = target
            remaining[target] -= size
            continue

        offsets = coordinates[members] - coordinates[members[0]]
        order = np.lexsort((members, np.linalg.norm(offsets, axis=1)))
        for unit in _placement_units(members[order], group_of):
            unit_size = int(counts[unit].sum())
            if unit_size > remaining[target]:
                target = int(np.argmax(remaining))
            if unit_size <= remaining[target] or len(unit) == 1:
                location_fold[unit] = target
                remaining[target] -= unit_size
                continue
            for location in unit:
                if counts[location] > remaining[target]:
                    target = int(np.argmax(remaining))
                location_fold[location] = target
                remaining[target] -= counts[location]

    return _fill_empty_folds(location_fold, counts, n_folds)


def _placement_units(ordered: np.ndarray, group_of: np.ndarray) -> list[np.ndarray]:
    # A group is emitted at the position of its first member in ``ordered``.
    units = []
    emitted = set()
    for location in ordered:
        g = int(group_of[location])
        if g < 0:
            units.append(np.array([location]))
        elif g not in emitted:
            emitted.add(g)
            units.append(ordered[group_of[ordered] == g])
    return units


def _fill_empty_folds(
    location_fold: np.ndarray,
    counts: np.ndarray,
    n_folds: int,
) -> np.ndarray:
    # Heavy duplicate locations can overflow folds and leave another empty.
    sizes = np.bincount(location_fold, weights=counts, minlength=n_folds)
    for empty in np.flatnonzero(sizes == 0):
        n_locations = np.bincount(location_fold, minlength=n_folds)
        donors = np.flatnonzero(n_locations >= 2)
        donor = donors[np.argmax(sizes[donors])]
        members = np.flatnonzero(location_fold == donor)
        moved = members[np.argmin(counts[members])]
        location_fold[moved] = empty
        sizes[donor] -= counts[moved]
        sizes[empty] += counts[moved]
    return location_fold


def score_candidate(
    n_clusters: int,
    clusterer: LocationClusterer,
    distance_matrix: DistanceMatrix,
    target_distances: np.ndarray,
    n_folds: int,
    statistic: str = "ks",
    groups: Optional[list[np.ndarray]] = None,
) -> Candidate:
    """Build and score the candidate for one cluster count.

    ``groups`` are separated location groups the merge keeps in one fold
    where it can; the candidate records how many of them it still splits.
    """
    groups = groups or []
    locations: DistinctLocations = clusterer.locations
    labels = clusterer.labels(n_clusters)
    location_fold = merge_clusters_into_folds(
        labels, locations.counts, clusterer.points, n_folds, groups
    )
    fold_ids = canonical_labels(location_fold[locations.sample_location])

    realized_by_location = distance_matrix.nearest_outside(location_fold)
    realized = realized_by_location[locations.sample_location]
    divergence = distribution_divergence(realized, target_distances, statistic)

    sizes = np.bincount(fold_ids, minlength=n_folds)
    return Candidate(
        n_clusters=n_clusters,
        fold_ids=fold_ids,
        divergence=divergence,
        imbalance=int(sizes.max() - sizes.min()),
        realized_distances=realized,
        n_split_groups=count_split_groups(location_fold, groups),
    )


def select_candidate(
    candidates: list[Candidate],
    divergence_tolerance: float = 1e-9,
) -> Candidate:
    """Pick the best candidate.

    Only candidates splitting the fewest separated groups compete. Among them
    the lowest divergence wins; candidates within ``divergence_tolerance`` of
    it are ranked by fold-size imbalance, then by fewer clusters.
    """
    fewest_splits = min(c.n_split_groups for c in candidates)
    candidates = [c for c in candidates if c.n_split_groups == fewest_splits]
    best_divergence = min(c.divergence for c in candidates)
    comparable = [
        c for c in candidates if c.divergence <= best_divergence + divergence_tolerance
    ]
    return min(comparable, key=lambda c: (c.imbalance, c.n_clusters))


def search_fold_assignment(
    clusterer: LocationClusterer,
    distance_matrix: DistanceMatrix,
    target_distances: np.ndarray,
    n_folds: int,
    statistic: str = "ks",
    max_candidates: int = 100,
    patience: Optional[int] = None,
    divergence_tolerance: float = 1e-9,
    n_jobs: int = 1,
) -> SearchResult:
    """Score candidate assignments and return the best one.

    Candidates are scored in ascending cluster count. Scoring may run on
    ``n_jobs`` threads; results are consumed in candidate order, so the
    outcome (including the early stop after ``patience`` candidates without
    improvement) does not depend on ``n_jobs``. A candidate improves on the
    best so far when it splits fewer separated groups, or as many with a
    divergence lower by more than ``divergence_tolerance``.

    Args:
        clusterer: Clusterer over the distinct sample locations.
        distance_matrix: Pairwise distances between distinct locations.
        target_distances: Prediction-location to nearest-sample distances.
        n_folds: Number of folds.
        statistic: 'ks' or 'wasserstein'.
        max_candidates: Budget of candidate assignments.
        patience: Stop after this many candidates without improvement.
        divergence_tolerance: Improvement smaller than this does not count.
        n_jobs: Number of worker threads.

    Returns:
        SearchResult with the selected candidate.
    """
    locations = clusterer.locations
    cluster_counts = candidate_cluster_counts(n_folds, len(locations), max_candidates)
    groups = separated_groups(
        clusterer.points, locations.counts, locations.n_samples // n_folds
    )
    logger.debug(f"Found {len(groups)} separated location groups")

    def score(q: int) -> Candidate:
        return score_candidate(
            q,
            clusterer,
            distance_matrix,
            target_distances,
            n_folds,
            statistic,
            groups,
        )

    scored: list[Candidate] = []
    best_splits = len(groups) + 1
    best_divergence = np.inf
    since_improvement = 0
    stopped_early = False
    chunk_size = max(1, n_jobs) * 4
    pool = ThreadPool(n_jobs) if n_jobs > 1 else None
    try:
        for start in range(0, len(cluster_counts), chunk_size):
            chunk = cluster_counts[start : start + chunk_size]
            results = pool.map(score, chunk) if pool else [score(q) for q in chunk]
            for candidate in results:
                scored.append(candidate)
                logger.debug(f"Scored {candidate}")
                fewer_splits = candidate.n_split_groups < best_splits
                lower = (
                    candidate.n_split_groups == best_splits
                    and candidate.divergence < best_divergence - divergence_tolerance
                )
                if fewer_splits or lower:
                    best_splits = candidate.n_split_groups
                    best_divergence = candidate.divergence
                    since_improvement = 0
                else:
                    since_improvement += 1
                if patience is not None and since_improvement >= patience:
                    stopped_early = True
                    break
            if stopped_early:
                break
    finally:
        if pool is not None:
            pool.close()
            pool.join()

    best = select_candidate(scored, divergence_tolerance)
    return SearchResult(
        best=best,
        n_scored=len(scored),
        n_planned=len(cluster_counts),
        stopped_early=stopped_early,
    )
