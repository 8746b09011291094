"""Configuration management for GeoFold.

Configuration lives in nested dictionaries loaded from YAML. The packaged
``default_config.yaml`` supplies every default; user files only need the
keys they change.
"""

import copy
import logging
import numbers
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from geofold.utils.errors import ParameterError, raise_option_error

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_yaml(path: Path) -> dict:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ParameterError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}"
        )
    return data


class ConfigManager:
    """Nested configuration with dotted-key access.

    Example:
        >>> from geofold.config import ConfigManager
        >>> config = ConfigManager({"fold_search": {"statistic": "wasserstein"}})
        >>> config.get("fold_search.statistic")
        'wasserstein'
        >>> config.get("fold_search.n_domain_points")
        1000
    """

    def __init__(
        self,
        config_dict: Optional[dict[str, Any]] = None,
        use_defaults: bool = True,
    ) -> None:
        base = _read_yaml(DEFAULT_CONFIG_PATH) if use_defaults else {}
        self._config = _deep_merge(base, config_dict or {})

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> "ConfigManager":
        """Load a YAML config file merged over the packaged defaults."""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")
        suffix = file_path.suffix.lower()
        if suffix not in (".yaml", ".yml"):
            raise ParameterError(
                f"Unsupported config file format: {suffix}. Use .yaml or .yml"
            )
        config = cls(_read_yaml(file_path))
        logger.info(f"Loaded config from {file_path}")
        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dotted key, e.g. ``"fold_search.statistic"``."""
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dotted key, creating intermediate sections."""
        parts = key.split(".")
        node = self._config
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value

    def update(self, overrides: dict[str, Any]) -> None:
        """Deep-merge a nested dictionary into this config."""
        self._config = _deep_merge(self._config, overrides)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._config)

    def save(self, file_path: Union[str, Path]) -> None:
        with open(file_path, "w") as f:
            yaml.safe_dump(self._config, f, sort_keys=False)

    def __repr__(self) -> str:
        return f"ConfigManager(sections={list(self._config)})"


_global_config: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Return the process-wide config, creating it from defaults on first use."""
    global _global_config
    if _global_config is None:
        _global_config = ConfigManager()
    return _global_config


def set_config(config: Optional[ConfigManager]) -> None:
    """Replace the process-wide config (``None`` resets to defaults)."""
    global _global_config
    _global_config = config


def load_config(file_path: Union[str, Path]) -> ConfigManager:
    """Load a YAML config and make it the process-wide config."""
    config = ConfigManager.from_file(file_path)
    set_config(config)
    return config


def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


_CHOICES = {
    "domain_sampling": ("regular", "random"),
    "statistic": ("ks", "wasserstein"),
    "clustering": ("hierarchical", "kmeans"),
    "outside_domain": ("include", "raise"),
    "metric": ("euclidean", "haversine"),
}


@dataclass(frozen=True)
class FoldSearchConfig:
    """Options of the spatial fold search.

    Attributes:
        n_domain_points: Number of prediction locations drawn from the domain.
        domain_sampling: 'regular' grid or 'random' uniform draw.
        statistic: Divergence statistic, 'ks' or 'wasserstein'.
        tolerance: Divergence above which a ConvergenceWarning is issued.
        divergence_tolerance: Candidates this close to the best divergence
            are compared on balance and cluster count instead.
        clustering: 'hierarchical' (Ward) or 'kmeans'.
        max_candidates: Maximum number of candidate assignments scored.
        patience: Stop after this many candidates without improvement
            (``None`` scores the full budget).
        outside_domain: 'include' or 'raise' for samples outside the domain.
        metric: 'euclidean' for projected coordinates, 'haversine' for
            longitude/latitude in degrees (distances in metres).
        random_state: Seed for random domain sampling and k-means.
        n_jobs: Worker threads for candidate scoring.
    """

    n_domain_points: int = 1000
    domain_sampling: str = "regular"
    statistic: str = "ks"
    tolerance: float = 0.25
    divergence_tolerance: float = 1e-9
    clustering: str = "hierarchical"
    max_candidates: int = 100
    patience: Optional[int] = 25
    outside_domain: str = "include"
    metric: str = "euclidean"
    random_state: int = 0
    n_jobs: int = 1

    def __post_init__(self) -> None:
        """Validate option values."""
        for name, choices in _CHOICES.items():
            value = getattr(self, name)
            if value not in choices:
                raise_option_error(name, value, valid_values=list(choices))

        for name in ("n_domain_points", "max_candidates", "n_jobs"):
            value = getattr(self, name)
            if not _is_integer(value) or value < 1:
                raise_option_error(name, value, constraint="integer >= 1")

        if self.patience is not None and (
            not _is_integer(self.patience) or self.patience < 1
        ):
            raise_option_error(
                "patience", self.patience, constraint="integer >= 1 or None"
            )

        if not _is_integer(self.random_state):
            raise_option_error(
                "random_state", self.random_state, constraint="integer seed"
            )

        for name in ("tolerance", "divergence_tolerance"):
            value = getattr(self, name)
            if not _is_number(value) or value < 0:
                raise_option_error(name, value, constraint="non-negative number")

    @classmethod
    def from_dict(cls, options: dict[str, Any]) -> "FoldSearchConfig":
        """Build from a flat dictionary; unknown keys raise ParameterError."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ParameterError(
                f"Unknown fold search options: {unknown}",
                suggestion=f"Valid options: {sorted(known)}",
            )
        return cls(**options)

    @classmethod
    def from_config(
        cls, config: Optional[ConfigManager] = None
    ) -> "FoldSearchConfig":
        """Build from the ``fold_search`` section of a ConfigManager."""
        config = config or get_config()
        section = config.get("fold_search", {}) or {}
        return cls.from_dict(section)

    def replace(self, **overrides: Any) -> "FoldSearchConfig":
        """Return a copy with some options changed."""
        return self.from_dict({**asdict(self), **overrides})
