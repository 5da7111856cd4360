"""
Configuration value objects for the extremum verifier and feature limiter.

Plain dataclasses with a ``check_validity`` method each, plus a YAML loader
that maps the nested sections of ``configs/default.yaml`` onto them.
"""

import math
from dataclasses import dataclass, field, fields
from enum import Enum

import yaml


class ConfigurationError(ValueError):
    """Raised when a configuration value or call argument is unusable."""


class MaxSelectorTypes(Enum):
    """Built-in policies for enforcing the maximum number of features."""

    BEST_N = "best_n"
    UNIFORM_BEST = "uniform_best"
    RANDOM = "random"
    FIRST = "first"


@dataclass
class ConfigGridUniform:
    """Sizing rule for the grid used by the uniform selector.

    ``inverse_region_scale`` shrinks cells as it grows: a value of 1 gives
    roughly one cell per requested feature, 0.5 gives cells twice as wide
    so that each one holds about four of the requested features.
    """

    inverse_region_scale: float = 0.5
    min_cell_length: int = 5

    def select_target_cell_size(self, limit: int, width: int, height: int) -> int:
        if limit <= 0:
            raise ConfigurationError(f"limit must be positive, got {limit}")
        target = int(math.sqrt(width * height / float(limit)) / self.inverse_region_scale)
        return max(self.min_cell_length, target)

    def check_validity(self) -> None:
        if not self.inverse_region_scale > 0:
            raise ConfigurationError(
                f"inverse_region_scale must be > 0, got {self.inverse_region_scale}")
        if self.min_cell_length < 1:
            raise ConfigurationError(
                f"min_cell_length must be >= 1, got {self.min_cell_length}")


@dataclass
class ConfigExtractor:
    """Settings for confirming candidates as local extrema."""

    radius: int = 2
    ignore_border: int = 0
    threshold_min: float = math.inf
    threshold_max: float = -math.inf
    strict: bool = True
    detect_minimums: bool = False
    detect_maximums: bool = True

    def check_validity(self) -> None:
        if self.radius < 0:
            raise ConfigurationError(f"radius must be >= 0, got {self.radius}")
        if self.ignore_border < 0:
            raise ConfigurationError(
                f"ignore_border must be >= 0, got {self.ignore_border}")
        if not (self.detect_minimums or self.detect_maximums):
            raise ConfigurationError("at least one of minimums/maximums must be detected")


@dataclass
class ConfigMaxSelector:
    """Which selector to use and the settings it needs."""

    type: MaxSelectorTypes = MaxSelectorTypes.BEST_N
    random_seed: int = 0xDEADBEEF
    uniform: ConfigGridUniform = field(default_factory=ConfigGridUniform)

    @classmethod
    def select_best_n(cls) -> "ConfigMaxSelector":
        return cls(MaxSelectorTypes.BEST_N, -1)

    @classmethod
    def select_random(cls, seed: int) -> "ConfigMaxSelector":
        return cls(MaxSelectorTypes.RANDOM, seed)

    @classmethod
    def select_uniform(cls, inverse_region_scale: float) -> "ConfigMaxSelector":
        config = cls(MaxSelectorTypes.UNIFORM_BEST, -1)
        config.uniform.inverse_region_scale = inverse_region_scale
        return config

    @classmethod
    def select_first(cls) -> "ConfigMaxSelector":
        return cls(MaxSelectorTypes.FIRST, -1)

    def check_validity(self) -> None:
        if not isinstance(self.type, MaxSelectorTypes):
            raise ConfigurationError(f"Unknown selector type {self.type!r}")
        self.uniform.check_validity()


@dataclass
class ConfigPipeline:
    """Top-level settings consumed by ``run_pipeline.py``."""

    harris_sigma: float = 1.0
    max_features: int = 500
    workers: int = 1
    results_dir: str = "results"
    extractor: ConfigExtractor = field(default_factory=ConfigExtractor)
    selector: ConfigMaxSelector = field(default_factory=ConfigMaxSelector)

    def check_validity(self) -> None:
        if self.max_features < 0:
            raise ConfigurationError(
                f"max_features must be >= 0, got {self.max_features}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        self.extractor.check_validity()
        self.selector.check_validity()


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _mapping(section, name: str) -> dict:
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping")
    return dict(section)


def _check_value(name: str, key: str, value, expected):
    # YAML integers are accepted where a float is expected; bools never pass as numbers
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, expected) or (isinstance(value, bool) and expected is not bool):
        raise ConfigurationError(f"'{name}.{key}' must be {expected.__name__}, got {value!r}")
    return value


def _build(cls, section, name: str):
    section = _mapping(section, name)
    # nested sections are built separately and may not appear as keys
    types = {f.name: f.type for f in fields(cls)
             if f.type in (int, float, bool, str, MaxSelectorTypes)}
    unknown = sorted(set(section) - set(types))
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{name}': {unknown}")
    values = {key: _check_value(name, key, value, types[key]) for key, value in section.items()}
    return cls(**values)


def _parse_selector_type(value) -> MaxSelectorTypes:
    if isinstance(value, MaxSelectorTypes):
        return value
    try:
        return MaxSelectorTypes(str(value).lower())
    except ValueError:
        raise ConfigurationError(f"Unknown selector type {value!r}") from None


def config_from_dict(raw: dict) -> ConfigPipeline:
    """Build a validated :class:`ConfigPipeline` from a parsed YAML mapping.

    Parameters
    ----------
    raw : dict
        Mapping with optional top-level keys ``harris``, ``extractor``,
        ``selector`` and ``pipeline``.

    Returns
    -------
    ConfigPipeline
    """
    raw = _mapping(raw, "<root>")
    unknown = sorted(set(raw) - {"harris", "extractor", "selector", "pipeline"})
    if unknown:
        raise ConfigurationError(f"Unknown configuration sections: {unknown}")

    extractor = _build(ConfigExtractor, raw.get("extractor"), "extractor")

    selector_raw = _mapping(raw.get("selector"), "selector")
    uniform = _build(ConfigGridUniform, selector_raw.pop("uniform", None), "selector.uniform")
    if "type" in selector_raw:
        selector_raw["type"] = _parse_selector_type(selector_raw["type"])
    selector = _build(ConfigMaxSelector, selector_raw, "selector")
    selector.uniform = uniform

    harris = _mapping(raw.get("harris"), "harris")
    unknown = sorted(set(harris) - {"sigma"})
    if unknown:
        raise ConfigurationError(f"Unknown keys in 'harris': {unknown}")
    pipeline = _mapping(raw.get("pipeline"), "pipeline")
    if "sigma" in harris:
        pipeline["harris_sigma"] = harris["sigma"]
    config = _build(ConfigPipeline, pipeline, "pipeline")
    config.extractor = extractor
    config.selector = selector

    config.check_validity()
    return config


def load_config(path: str) -> ConfigPipeline:
    with open(path, "r") as fh:
        return config_from_dict(yaml.safe_load(fh))
