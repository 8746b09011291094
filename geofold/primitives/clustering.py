"""Spatial clustering of distinct sample locations.

Fold candidates are built from clusters of *distinct* locations so that
samples sharing a coordinate always land in the same fold.
"""

from dataclasses import dataclass

import numpy as np
from scipy.cluster.hierarchy import fcluster, linkage
from sklearn.cluster import KMeans

from geofold.primitives.distances import clustering_coordinates
from geofold.utils.errors import raise_option_error

CLUSTERING_METHODS = ("hierarchical", "kmeans")

SEPARATION_RATIO = 4.0


@dataclass(frozen=True, eq=False)
class DistinctLocations:
    """Distinct coordinates of a sample set, in order of first appearance.

    Attributes:
        coordinates: Array (n_locations, 2) of distinct coordinates.
        counts: Number of samples at each location.
        sample_location: Location index of every sample.
    """

    coordinates: np.ndarray
    counts: np.ndarray
    sample_location: np.ndarray

    @classmethod
    def from_coordinates(cls, coordinates: np.ndarray) -> "DistinctLocations":
        coordinates = np.asarray(coordinates, dtype=np.float64)
        unique, first, inverse, counts = np.unique(
            coordinates,
            axis=0,
            return_index=True,
            return_inverse=True,
            return_counts=True,
        )
        inverse = inverse.reshape(-1)
        # np.unique sorts lexicographically; reorder by first occurrence.
        order = np.argsort(first, kind="stable")
        rank = np.empty_like(order)
        rank[order] = np.arange(len(order))
        return cls(
            coordinates=unique[order],
            counts=counts[order],
            sample_location=rank[inverse],
        )

    def __len__(self) -> int:
        return len(self.coordinates)

    @property
    def n_samples(self) -> int:
        return int(self.counts.sum())


def canonical_labels(labels: np.ndarray) -> np.ndarray:
    """Relabel so that labels appear as 0, 1, 2, ... in order of first use."""
    labels = np.asarray(labels)
    values, first = np.unique(labels, return_index=True)
    order = values[np.argsort(first, kind="stable")]
    mapping = {value: i for i, value in enumerate(order.tolist())}
    return np.array([mapping[v] for v in labels.tolist()], dtype=np.int64)


def separated_groups(
    points: np.ndarray,
    counts: np.ndarray,
    max_size: int,
    ratio: float = SEPARATION_RATIO,
) -> list[np.ndarray]:
    """Groups of locations much closer to each other than to anything else.

    Single-linkage merge heights are nearest-neighbour gaps. A subtree of the
    single-linkage tree is a separated group when the gap joining it to the
    rest exceeds ``ratio`` times the largest gap inside it. Groups holding
    more than ``max_size`` samples cannot sit in one fold and are skipped;
    nested groups are reported once, as their largest separated ancestor.

    Args:
        points: Clustering coordinates of the distinct locations.
        counts: Number of samples per location.
        max_size: Largest group, in samples, worth keeping in one fold.
        ratio: Required separation relative to the internal spread.

    Returns:
        List of location index arrays, disjoint, each with 2+ locations.

    Example:
        >>> import numpy as np
        >>> from geofold.primitives.clustering import separated_groups
        >>> points = np.array([[0, 0], [0, 1], [20, 0], [45, 0], [45, 2]])
        >>> [g.tolist() for g in separated_groups(points, np.ones(5), 2)]
        [[3, 4], [0, 1]]
    """
    n = len(points)
    if n < 3:
        return []
    tree = linkage(points, method="single")
    children = tree[:, :2].astype(np.int64)

    n_nodes = 2 * n - 1
    height = np.zeros(n_nodes)
    height[n:] = tree[:, 2]
    parent_height = np.full(n_nodes, np.inf)
    size = np.zeros(n_nodes)
    size[:n] = counts
    for i, (a, b) in enumerate(children):
        parent_height[a] = parent_height[b] = tree[i, 2]
        size[n + i] = size[a] + size[b]

    separated = (
        np.isfinite(parent_height)
        & (parent_height > ratio * height)
        & (size <= max_size)
    )
    separated[:n] = False

    groups = []
    covered = np.zeros(n_nodes, dtype=bool)
    # Walk from the root down so ancestors are seen before descendants.
    for i in range(n - 2, -1, -1):
        node = n + i
        if separated[node] and not covered[node]:
            groups.append(_leaves(children, node, n))
            covered[node] = True
        if covered[node]:
            covered[children[i]] = True
    return groups


def _leaves(children: np.ndarray, node: int, n: int) -> np.ndarray:
    leaves = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current < n:
            leaves.append(current)
        else:
            stack.extend(children[current - n].tolist())
    return np.sort(np.array(leaves, dtype=np.int64))


def count_split_groups(location_fold: np.ndarray, groups: list[np.ndarray]) -> int:
    """Number of groups whose locations fall in more than one fold."""
    return sum(
        int(location_fold[group].min() != location_fold[group].max())
        for group in groups
    )


class LocationClusterer:
    """Clusters distinct locations into a requested number of groups.

    Hierarchical (Ward) clustering computes the linkage tree once and cuts it
    at any cluster count. K-means is refitted per count with a fixed seed.
    Both are deterministic for a given input.

    Example:
        >>> import numpy as np
        >>> from geofold.primitives.clustering import (
        ...     DistinctLocations, LocationClusterer
        ... )
        >>> coords = np.array([[0, 0], [0, 1], [10, 10], [10, 11]])
        >>> clusterer = LocationClusterer(DistinctLocations.from_coordinates(coords))
        >>> clusterer.labels(2).tolist()
        [0, 0, 1, 1]
    """

    def __init__(
        self,
        locations: DistinctLocations,
        method: str = "hierarchical",
        metric: str = "euclidean",
        random_state: int = 0,
    ) -> None:
        if method not in CLUSTERING_METHODS:
            raise_option_error(
                "clustering", method, valid_values=list(CLUSTERING_METHODS)
            )
        self.locations = locations
        self.method = method
        self.random_state = random_state
        self.points = clustering_coordinates(locations.coordinates, metric)
        self._linkage = None
        if method == "hierarchical" and len(locations) >= 2:
            self._linkage = linkage(self.points, method="ward")

    def labels(self, n_clusters: int) -> np.ndarray:
        """Cluster label of every distinct location, canonically ordered."""
        n_locations = len(self.locations)
        if n_clusters >= n_locations:
            return np.arange(n_locations, dtype=np.int64)
        if n_clusters <= 1:
            return np.zeros(n_locations, dtype=np.int64)

        if self.method == "hierarchical":
            raw = fcluster(self._linkage, t=n_clusters, criterion="maxclust")
        else:
            model = KMeans(
                n_clusters=n_clusters,
                random_state=self.random_state,
                n_init=10,
            )
            raw = model.fit_predict(self.points)
        return canonical_labels(raw)

    def __repr__(self) -> str:
        return (
            f"LocationClusterer(method={self.method}, "
            f"n_locations={len(self.locations)})"
        )
