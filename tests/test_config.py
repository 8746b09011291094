"""Tests for configuration loading and FoldSearchConfig."""

import numpy as np
import pytest
import yaml

from geofold import SpatialFoldAssigner
from geofold.config import (
    ConfigManager,
    FoldSearchConfig,
    get_config,
    load_config,
    set_config,
)
from geofold.utils.errors import ParameterError


@pytest.fixture(autouse=True)
def reset_global_config():
    """Restore the process-wide config after each test."""
    yield
    set_config(None)


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_defaults(self):
        """Test that packaged defaults are loaded."""
        config = ConfigManager()

        assert config.get("fold_search.statistic") == "ks"
        assert config.get("fold_search.n_domain_points") == 1000
        assert config.get("fold_search.divergence_tolerance") == pytest.approx(1e-9)
        assert config.get("missing.key", "fallback") == "fallback"

    def test_override_merges(self):
        """Test that overrides keep untouched defaults."""
        config = ConfigManager({"fold_search": {"statistic": "wasserstein"}})

        assert config.get("fold_search.statistic") == "wasserstein"
        assert config.get("fold_search.clustering") == "hierarchical"

    def test_set_and_update(self):
        """Test dotted-key set and nested update."""
        config = ConfigManager(use_defaults=False)
        config.set("fold_search.n_jobs", 4)
        config.update({"fold_search": {"patience": 3}})

        assert config.to_dict() == {"fold_search": {"n_jobs": 4, "patience": 3}}

    def test_from_file(self, tmp_path):
        """Test loading a YAML file."""
        path = tmp_path / "geofold.yaml"
        path.write_text(yaml.safe_dump({"fold_search": {"max_candidates": 7}}))

        config = load_config(path)

        assert config.get("fold_search.max_candidates") == 7
        assert get_config() is config

    def test_save_round_trip(self, tmp_path):
        """Test that a saved config loads back unchanged."""
        config = ConfigManager({"fold_search": {"metric": "haversine"}})
        path = tmp_path / "saved.yml"
        config.save(path)

        assert ConfigManager.from_file(path).to_dict() == config.to_dict()

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ConfigManager.from_file(tmp_path / "nope.yaml")

    def test_unsupported_suffix(self, tmp_path):
        """Test that non-YAML files are rejected."""
        path = tmp_path / "config.json"
        path.write_text("{}")
        with pytest.raises(ParameterError, match="Unsupported config file format"):
            ConfigManager.from_file(path)


class TestFoldSearchConfig:
    """Tests for FoldSearchConfig."""

    def test_from_config(self):
        """Test building options from the fold_search section."""
        config = ConfigManager({"fold_search": {"statistic": "wasserstein"}})
        options = FoldSearchConfig.from_config(config)

        assert options.statistic == "wasserstein"
        assert options.patience == 25

    def test_invalid_choice(self):
        """Test that unknown option values are rejected."""
        with pytest.raises(ParameterError, match="statistic"):
            FoldSearchConfig(statistic="chi2")

    def test_invalid_integer(self):
        """Test that counts must be positive integers."""
        with pytest.raises(ParameterError, match="n_jobs"):
            FoldSearchConfig(n_jobs=0)
        with pytest.raises(ParameterError, match="patience"):
            FoldSearchConfig(patience=0)

    @pytest.mark.parametrize(
        "options, name",
        [
            ({"tolerance": "0.1"}, "tolerance"),
            ({"divergence_tolerance": None}, "divergence_tolerance"),
            ({"tolerance": -0.5}, "tolerance"),
            ({"tolerance": True}, "tolerance"),
            ({"patience": True}, "patience"),
            ({"patience": 2.0}, "patience"),
            ({"max_candidates": False}, "max_candidates"),
            ({"random_state": "seed"}, "random_state"),
        ],
    )
    def test_option_types(self, options, name):
        """Test that wrongly typed options raise ParameterError, not TypeError."""
        with pytest.raises(ParameterError, match=name) as excinfo:
            FoldSearchConfig.from_dict(options)

        assert excinfo.value.details["parameter"] == name

    def test_yaml_string_tolerance(self, tmp_path):
        """Test that a quoted number in a YAML file is rejected cleanly."""
        path = tmp_path / "geofold.yaml"
        path.write_text('fold_search:\n  tolerance: "0.1"\n')

        with pytest.raises(ParameterError, match="non-negative number"):
            FoldSearchConfig.from_config(ConfigManager.from_file(path))

    def test_numpy_scalars_accepted(self):
        """Test that numpy integer and float scalars are valid options."""
        options = FoldSearchConfig(
            max_candidates=np.int64(10), tolerance=np.float32(0.5)
        )
        assert options.max_candidates == 10

    def test_error_message_names_value(self):
        """Test that option errors name the option, the value and the choices."""
        with pytest.raises(ParameterError) as excinfo:
            FoldSearchConfig(metric="manhattan")

        message = str(excinfo.value)
        assert "metric='manhattan'" in message
        assert "choose one of euclidean, haversine" in message

    def test_unknown_key(self):
        """Test that unknown keys are reported."""
        with pytest.raises(ParameterError, match="Unknown fold search options"):
            FoldSearchConfig.from_dict({"n_folds": 5})

    def test_replace(self):
        """Test copying with overrides."""
        options = FoldSearchConfig().replace(metric="haversine", n_jobs=2)

        assert options.metric == "haversine"
        assert options.n_jobs == 2
        assert options.statistic == "ks"

    def test_assigner_options(self):
        """Test that assigner keyword options override the config."""
        assigner = SpatialFoldAssigner(statistic="wasserstein", patience=None)

        assert assigner.config.statistic == "wasserstein"
        assert assigner.config.patience is None

    def test_global_config_feeds_assigner(self):
        """Test that the process-wide config supplies assigner defaults."""
        set_config(ConfigManager({"fold_search": {"clustering": "kmeans"}}))

        assert SpatialFoldAssigner().config.clustering == "kmeans"
