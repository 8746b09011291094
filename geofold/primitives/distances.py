"""Nearest-neighbour distance computations.

Two metrics are supported: 'euclidean' for projected coordinates and
'haversine' for longitude/latitude in degrees, returning metres.
"""

from dataclasses import dataclass

import numpy as np
from scipy.spatial import cKDTree
from scipy.spatial.distance import pdist, squareform
from sklearn.metrics.pairwise import haversine_distances
from sklearn.neighbors import BallTree

from geofold.utils.errors import raise_option_error

EARTH_RADIUS_M = 6_371_008.8

METRICS = ("euclidean", "haversine")


def _check_metric(metric: str) -> None:
    if metric not in METRICS:
        raise_option_error("metric", metric, valid_values=list(METRICS))


def _lonlat_to_radians(coordinates: np.ndarray) -> np.ndarray:
    # BallTree and haversine_distances expect (lat, lon) in radians.
    return np.radians(np.asarray(coordinates)[:, ::-1])


def nearest_distances(
    query: np.ndarray,
    reference: np.ndarray,
    metric: str = "euclidean",
) -> np.ndarray:
    """Distance from every query point to its nearest reference point.

    Args:
        query: Array (n_query, 2).
        reference: Array (n_reference, 2), at least one point.
        metric: 'euclidean' or 'haversine'.

    Returns:
        Array (n_query,) of distances.
    """
    _check_metric(metric)
    query = np.asarray(query, dtype=np.float64)
    if len(query) == 0:
        return np.zeros(0)
    if metric == "euclidean":
        distances, _ = cKDTree(reference).query(query, k=1)
        return np.asarray(distances, dtype=np.float64)
    tree = BallTree(_lonlat_to_radians(reference), metric="haversine")
    distances, _ = tree.query(_lonlat_to_radians(query), k=1)
    return distances[:, 0] * EARTH_RADIUS_M


def clustering_coordinates(coordinates: np.ndarray, metric: str) -> np.ndarray:
    """Coordinates in a space where Euclidean distance suits clustering.

    Longitude/latitude are mapped to points on the unit sphere so that
    Ward linkage and k-means do not split clusters at the antimeridian.
    """
    _check_metric(metric)
    coordinates = np.asarray(coordinates, dtype=np.float64)
    if metric == "euclidean":
        return coordinates
    lat, lon = _lonlat_to_radians(coordinates).T
    return np.column_stack(
        [np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat)]
    )


@dataclass(frozen=True, eq=False)
class DistanceMatrix:
    """Pairwise distances between locations (symmetric, zero diagonal).

    Workers read it concurrently during the fold search; it is never
    modified after construction.
    """

    values: np.ndarray

    @classmethod
    def from_coordinates(
        cls, coordinates: np.ndarray, metric: str = "euclidean"
    ) -> "DistanceMatrix":
        _check_metric(metric)
        coordinates = np.asarray(coordinates, dtype=np.float64)
        if metric == "euclidean":
            values = squareform(pdist(coordinates))
        else:
            values = haversine_distances(_lonlat_to_radians(coordinates))
            values *= EARTH_RADIUS_M
            np.fill_diagonal(values, 0.0)
        values.flags.writeable = False
        return cls(values=values)

    def __len__(self) -> int:
        return len(self.values)

    def nearest_neighbor(self) -> np.ndarray:
        """Distance from each location to its nearest other location."""
        masked = self.values + np.diag(np.full(len(self), np.inf))
        return masked.min(axis=1)

    def nearest_outside(self, labels: np.ndarray) -> np.ndarray:
        """Distance from each location to the nearest location with another label.

        With fold labels this is the held-out to nearest-training distance.
        Locations whose label is the only label present get ``inf``.
        """
        labels = np.asarray(labels)
        result = np.full(len(labels), np.inf)
        for label in np.unique(labels):
            inside = labels == label
            if inside.all():
                continue
            block = self.values[np.ix_(inside, ~inside)]
            result[inside] = block.min(axis=1)
        return result
