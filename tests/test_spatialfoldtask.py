"""Tests for SpatialFoldAssigner."""

import logging
import warnings

import numpy as np
import pytest
from scipy.spatial.distance import cdist
from shapely.geometry import box

from geofold import (
    ConvergenceWarning,
    FoldSearchConfig,
    InputError,
    ParameterError,
    PointSet,
    PolygonSet,
    SpatialFoldAssigner,
    spatial_fold_assignment,
)


@pytest.fixture
def grid_samples():
    """Twenty samples on a 5 x 4 unit grid."""
    return np.array([[x, y] for y in range(4) for x in range(5)], dtype=float)


@pytest.fixture
def clustered_samples():
    """Five tight groups of four samples, 20 units apart, cluster by cluster."""
    offsets = np.array([[-0.5, -0.5], [0.5, -0.5], [-0.5, 0.5], [0.5, 0.5]])
    centres = np.array([[10, 5], [30, 5], [50, 5], [70, 5], [90, 5]], dtype=float)
    return np.vstack([centre + offsets for centre in centres])


@pytest.fixture
def random_samples():
    """Forty random samples in a 100 x 100 square."""
    return np.random.default_rng(42).uniform(0, 100, size=(40, 2))


@pytest.fixture
def square():
    return PolygonSet.from_bounds(0, 0, 100, 100)


def _separated_centres(rng, n_centres, min_separation):
    centres = []
    while len(centres) < n_centres:
        candidate = rng.uniform(10, 90, 2)
        if all(np.linalg.norm(candidate - c) >= min_separation for c in centres):
            centres.append(candidate)
    return np.array(centres)


def _assert_partition(assignment, n_samples):
    tests = np.concatenate([fold.test for fold in assignment])
    np.testing.assert_array_equal(np.sort(tests), np.arange(n_samples))
    for fold in assignment:
        assert np.intersect1d(fold.train, fold.test).size == 0
        assert len(fold.train) + len(fold.test) == n_samples


class TestAssignScenarios:
    """End-to-end assignment scenarios."""

    def test_uniform_grid(self, grid_samples):
        """Test that a regular grid gives equal folds and a small divergence."""
        domain = PolygonSet.from_bounds(-0.5, -0.5, 4.5, 4.5)

        assignment = SpatialFoldAssigner(
            statistic="wasserstein", tolerance=1.0
        ).assign(grid_samples, domain, k=5)

        assert assignment.n_folds == 5
        np.testing.assert_array_equal(assignment.fold_sizes, [4, 4, 4, 4, 4])
        # Held-out distances cannot drop below the grid spacing of 1.
        assert assignment.divergence < 0.75
        _assert_partition(assignment, 20)

    def test_clusters_kept_whole(self, clustered_samples):
        """Test that each tight cluster forms one fold's test set."""
        domain = PolygonSet.from_bounds(0, 0, 100, 100)

        assignment = SpatialFoldAssigner(tolerance=1.0).assign(
            clustered_samples, domain, k=5
        )

        fold_ids = assignment.fold_ids
        for cluster in range(5):
            assert len(set(fold_ids[4 * cluster : 4 * cluster + 4])) == 1
        assert len(set(fold_ids.tolist())) == 5
        assert np.all(assignment.realized_distances > 18.0)

    @pytest.mark.parametrize("statistic", ["ks", "wasserstein"])
    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_random_clusters_kept_whole(self, seed, statistic):
        """Test that tight clusters at random centres stay whole in any order."""
        rng = np.random.default_rng(seed)
        centres = _separated_centres(rng, n_centres=5, min_separation=15.0)
        coords = np.vstack([c + rng.normal(0, 0.3, (4, 2)) for c in centres])
        cluster = np.repeat(np.arange(5), 4)
        order = rng.permutation(20)
        domain = PolygonSet.from_bounds(0, 0, 100, 100)

        assignment = SpatialFoldAssigner(
            statistic=statistic, tolerance=100.0
        ).assign(coords[order], domain, k=5)

        fold_ids = assignment.fold_ids
        for c in range(5):
            assert len(set(fold_ids[cluster[order] == c].tolist())) == 1
        assert len(set(fold_ids.tolist())) == 5
        _assert_partition(assignment, 20)

    def test_k_one(self, random_samples, square):
        """Test that k=1 is rejected."""
        with pytest.raises(InputError, match="k must be >= 2"):
            SpatialFoldAssigner().assign(random_samples, square, k=1)

    def test_fewer_locations_than_folds(self, square):
        """Test that k above the distinct location count is rejected."""
        coords = np.array([[1, 1], [2, 2], [3, 3]] * 4, dtype=float)

        with pytest.raises(InputError, match="exceeds the number") as excinfo:
            SpatialFoldAssigner().assign(coords, square, k=5)

        assert "(need k <= 3, got k=5)" in str(excinfo.value)


class TestAssignProperties:
    """General properties of assignments."""

    def test_partition_and_sizes(self, random_samples, square):
        """Test that folds partition samples with near-equal sizes."""
        assignment = SpatialFoldAssigner(tolerance=1.0).assign(
            random_samples, square, k=4
        )

        _assert_partition(assignment, 40)
        assert assignment.imbalance <= 1
        assert assignment.fold_ids[0] == 0
        assert assignment.n_clusters >= 4

    @pytest.mark.parametrize("k", [2, 3, 5, 8, 40])
    def test_increasing_k(self, random_samples, square, k):
        """Test that any valid k yields exactly k balanced folds."""
        assignment = SpatialFoldAssigner(tolerance=1.0).assign(
            random_samples, square, k=k
        )

        assert assignment.n_folds == k
        assert assignment.imbalance <= 1
        _assert_partition(assignment, 40)

    def test_deterministic(self, random_samples, square):
        """Test that repeated calls give identical output."""
        assigner = SpatialFoldAssigner(tolerance=1.0)

        first = assigner.assign(random_samples, square, k=5)
        second = assigner.assign(random_samples, square, k=5)

        assert first.fold_ids.tobytes() == second.fold_ids.tobytes()
        assert first.divergence == second.divergence

    def test_independent_of_n_jobs(self, random_samples, square):
        """Test that worker threads do not change the result."""
        serial = SpatialFoldAssigner(tolerance=1.0, n_jobs=1).assign(
            random_samples, square, k=5
        )
        threaded = SpatialFoldAssigner(tolerance=1.0, n_jobs=4).assign(
            random_samples, square, k=5
        )

        np.testing.assert_array_equal(serial.fold_ids, threaded.fold_ids)
        assert serial.divergence == threaded.divergence

    def test_realized_distances(self, random_samples, square):
        """Test realised distances against brute-force nearest training samples."""
        assignment = SpatialFoldAssigner(tolerance=1.0).assign(
            random_samples, square, k=5
        )

        for fold in assignment:
            expected = cdist(
                random_samples[fold.test], random_samples[fold.train]
            ).min(axis=1)
            np.testing.assert_allclose(
                assignment.realized_distances[fold.test], expected
            )

    def test_duplicates_share_fold(self, square):
        """Test that samples at the same location are never split."""
        rng = np.random.default_rng(3)
        base = rng.uniform(0, 100, size=(15, 2))
        coords = np.vstack([base, base[:5], base[:5]])

        assignment = SpatialFoldAssigner(tolerance=1.0).assign(coords, square, k=3)

        for i in range(5):
            assert assignment.fold_ids[i] == assignment.fold_ids[15 + i]
            assert assignment.fold_ids[i] == assignment.fold_ids[20 + i]

    def test_pointset_ids_preserved(self, random_samples, square):
        """Test that a PointSet input is accepted as is."""
        samples = PointSet(coordinates=random_samples, crs="EPSG:3035")

        assignment = SpatialFoldAssigner(tolerance=1.0).assign(samples, square, k=3)

        assert assignment.n_samples == len(samples)

    def test_target_distances_stored(self, random_samples, square):
        """Test that the target distribution is returned with the folds."""
        assigner = SpatialFoldAssigner(tolerance=1.0, n_domain_points=400)

        assignment = assigner.assign(random_samples, square, k=3)

        assert len(assignment.target_distances) == 400
        np.testing.assert_allclose(
            assignment.target_distances,
            assigner.target_distances(PointSet(coordinates=random_samples), square),
        )


class TestAssignOptions:
    """Tests for search options."""

    def test_reference_points_domain(self, random_samples):
        """Test a pre-sampled set of prediction locations as domain."""
        grid = np.stack(
            np.meshgrid(np.arange(1, 100, 5.0), np.arange(1, 100, 5.0)), axis=-1
        ).reshape(-1, 2)

        assignment = SpatialFoldAssigner(tolerance=1.0).assign(
            random_samples, PointSet(coordinates=grid), k=4
        )

        assert len(assignment.target_distances) == len(grid)
        np.testing.assert_allclose(
            assignment.target_distances, cdist(grid, random_samples).min(axis=1)
        )

    def test_shapely_domain(self, random_samples):
        """Test a shapely polygon as domain."""
        assignment = SpatialFoldAssigner(tolerance=1.0).assign(
            random_samples, box(0, 0, 100, 100), k=3
        )
        assert assignment.n_folds == 3

    @pytest.mark.parametrize("statistic", ["ks", "wasserstein"])
    @pytest.mark.parametrize("clustering", ["hierarchical", "kmeans"])
    def test_statistic_and_clustering(
        self, random_samples, square, statistic, clustering
    ):
        """Test every statistic and clustering combination."""
        assignment = SpatialFoldAssigner(
            statistic=statistic, clustering=clustering, tolerance=100.0
        ).assign(random_samples, square, k=4)

        assert assignment.statistic == statistic
        assert assignment.divergence >= 0.0
        _assert_partition(assignment, 40)

    def test_random_domain_sampling(self, random_samples, square):
        """Test random domain sampling is reproducible per seed."""
        assigner = SpatialFoldAssigner(
            domain_sampling="random", random_state=9, tolerance=1.0
        )

        first = assigner.assign(random_samples, square, k=3)
        second = assigner.assign(random_samples, square, k=3)

        np.testing.assert_array_equal(first.target_distances, second.target_distances)

    def test_haversine(self):
        """Test longitude/latitude samples with great-circle distances."""
        rng = np.random.default_rng(5)
        coords = np.column_stack([rng.uniform(5, 15, 30), rng.uniform(45, 55, 30)])
        domain = PolygonSet.from_bounds(5, 45, 15, 55, crs="EPSG:4326")

        assignment = SpatialFoldAssigner(metric="haversine", tolerance=1.0).assign(
            coords, domain, k=3
        )

        # Distances are in metres, so neighbours are kilometres apart.
        assert np.median(assignment.realized_distances) > 1_000.0
        _assert_partition(assignment, 30)

    def test_config_object(self, random_samples, square):
        """Test passing a FoldSearchConfig."""
        config = FoldSearchConfig(max_candidates=5, patience=None, tolerance=1.0)

        assignment = spatial_fold_assignment(random_samples, square, 3, config=config)

        assert assignment.n_folds == 3


class TestAssignErrors:
    """Tests for input errors and warnings."""

    @pytest.mark.parametrize("k", [0, -3, 2.5, "5", True])
    def test_invalid_k(self, random_samples, square, k):
        """Test that non-integer or small k is rejected."""
        with pytest.raises(ParameterError):
            SpatialFoldAssigner().assign(random_samples, square, k=k)

    def test_single_location(self, square):
        """Test that all samples at one location are rejected."""
        coords = np.tile([[5.0, 5.0]], (10, 1))

        with pytest.raises(InputError, match="at least 2 distinct"):
            SpatialFoldAssigner().assign(coords, square, k=2)

    def test_empty_domain(self, random_samples):
        """Test that an empty PolygonSet is rejected."""
        with pytest.raises(InputError, match="no polygons"):
            SpatialFoldAssigner().assign(random_samples, PolygonSet(rings=[]), k=3)

    def test_empty_reference_points(self, random_samples):
        """Test that an empty reference point set is rejected."""
        empty = PointSet(coordinates=np.empty((0, 2)))
        with pytest.raises(InputError, match="empty"):
            SpatialFoldAssigner().assign(random_samples, empty, k=3)

    def test_degenerate_domain(self, random_samples):
        """Test that a zero-area domain is rejected."""
        flat = PolygonSet.from_bounds(0, 0, 100, 0)
        with pytest.raises(InputError):
            SpatialFoldAssigner().assign(random_samples, flat, k=3)

    def test_unsupported_domain(self, random_samples):
        """Test that arbitrary objects are rejected as domains."""
        with pytest.raises(InputError, match="domain must be"):
            SpatialFoldAssigner().assign(random_samples, [0, 0, 1, 1], k=3)

    def test_nan_samples(self, square):
        """Test that NaN coordinates are rejected."""
        coords = np.array([[1.0, 1.0], [np.nan, 2.0], [3.0, 3.0]])
        with pytest.raises(InputError):
            SpatialFoldAssigner().assign(coords, square, k=2)

    def test_outside_domain_included(self, random_samples, caplog):
        """Test that outside samples are kept with a logged warning."""
        domain = PolygonSet.from_bounds(0, 0, 50, 50)

        with caplog.at_level(logging.WARNING, logger="geofold"):
            assignment = SpatialFoldAssigner(tolerance=1.0).assign(
                random_samples, domain, k=3
            )

        assert assignment.n_samples == 40
        assert "outside the domain" in caplog.text

    def test_outside_domain_raise(self, random_samples):
        """Test the strict policy for samples outside the domain."""
        domain = PolygonSet.from_bounds(0, 0, 50, 50)

        with pytest.raises(InputError, match="outside the domain") as excinfo:
            SpatialFoldAssigner(outside_domain="raise").assign(
                random_samples, domain, k=3
            )
        assert excinfo.value.details["outside"]

    def test_convergence_warning(self, random_samples, square, caplog):
        """Test that an unmatched target raises a ConvergenceWarning."""
        with caplog.at_level(logging.WARNING, logger="geofold"):
            with pytest.warns(ConvergenceWarning, match="did not reach"):
                assignment = SpatialFoldAssigner(tolerance=0.0).assign(
                    random_samples, square, k=3
                )

        assert assignment.divergence > 0.0
        assert "did not reach" in caplog.text

    def test_no_warning_within_tolerance(self, random_samples, square):
        """Test that no warning is issued when the tolerance is met."""
        with warnings.catch_warnings():
            warnings.simplefilter("error", ConvergenceWarning)
            SpatialFoldAssigner(tolerance=1.0).assign(random_samples, square, k=3)
