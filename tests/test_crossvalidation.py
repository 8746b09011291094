"""Tests for SpatialKFold and scikit-learn interoperability."""

import numpy as np
import pytest
from sklearn.ensemble import RandomForestRegressor
from sklearn.feature_selection import SequentialFeatureSelector
from sklearn.linear_model import LinearRegression
from sklearn.model_selection import PredefinedSplit, cross_val_score

from geofold import (
    DataValidationError,
    FoldSearchConfig,
    PolygonSet,
    SpatialKFold,
    to_predefined_split,
)


@pytest.fixture
def dataset():
    """Spatially structured regression data with two informative predictors."""
    rng = np.random.default_rng(11)
    coords = rng.uniform(0, 100, size=(60, 2))
    X = np.column_stack(
        [
            coords[:, 0] / 100,
            coords[:, 1] / 100,
            rng.normal(size=60),
            rng.normal(size=60),
        ]
    )
    y = 3 * X[:, 0] - 2 * X[:, 1] + rng.normal(scale=0.1, size=60)
    return coords, X, y


@pytest.fixture
def config():
    return FoldSearchConfig(tolerance=1.0, max_candidates=20)


@pytest.fixture
def domain():
    return PolygonSet.from_bounds(0, 0, 100, 100)


class TestSpatialKFold:
    """Tests for SpatialKFold."""

    def test_split(self, dataset, domain, config):
        """Test that splits cover every sample once as test."""
        coords, X, _ = dataset
        cv = SpatialKFold(coords, domain, n_splits=4, config=config)

        splits = list(cv.split(X))

        assert cv.get_n_splits() == 4
        assert len(splits) == 4
        tests = np.sort(np.concatenate([test for _, test in splits]))
        np.testing.assert_array_equal(tests, np.arange(60))

    def test_assignment_cached(self, dataset, domain, config):
        """Test that the assignment is computed once."""
        coords, X, _ = dataset
        cv = SpatialKFold(coords, domain, n_splits=3, config=config)

        assert cv.assignment is cv.assignment
        first = [test.tolist() for _, test in cv.split(X)]
        second = [test.tolist() for _, test in cv.split(X)]
        assert first == second

    def test_length_mismatch(self, dataset, domain, config):
        """Test that X must match the coordinates row for row."""
        coords, X, _ = dataset
        cv = SpatialKFold(coords, domain, n_splits=3, config=config)

        with pytest.raises(DataValidationError, match="one row per sample"):
            list(cv.split(X[:10]))

    def test_predefined_split(self, dataset, domain, config):
        """Test conversion to a PredefinedSplit."""
        coords, _, _ = dataset
        assignment = SpatialKFold(coords, domain, 3, config=config).assignment

        split = to_predefined_split(assignment)

        assert isinstance(split, PredefinedSplit)
        assert split.get_n_splits() == 3
        for (_, expected), (_, actual) in zip(assignment.split(), split.split()):
            np.testing.assert_array_equal(expected, actual)


@pytest.mark.integration
class TestScikitLearnIntegration:
    """SpatialKFold as the cv argument of scikit-learn tools."""

    def test_cross_val_score(self, dataset, domain, config):
        """Test spatial CV of a random forest."""
        coords, X, y = dataset
        cv = SpatialKFold(coords, domain, n_splits=5, config=config)

        scores = cross_val_score(
            RandomForestRegressor(n_estimators=20, random_state=0),
            X,
            y,
            cv=cv,
            scoring="neg_root_mean_squared_error",
        )

        assert len(scores) == 5
        assert np.all(np.isfinite(scores))

    def test_forward_feature_selection(self, dataset, domain, config):
        """Test forward feature selection with spatial folds."""
        coords, X, y = dataset
        cv = SpatialKFold(coords, domain, n_splits=3, config=config)

        selector = SequentialFeatureSelector(
            LinearRegression(),
            n_features_to_select=2,
            direction="forward",
            cv=cv,
        ).fit(X, y)

        assert selector.get_support().tolist() == [True, True, False, False]
