"""
Factory creating a :class:`FeatureMaxSelector` from its configuration.
"""

from keypoint_select.config import ConfigMaxSelector, ConfigurationError, MaxSelectorTypes
from keypoint_select.selection.selectors import (
    FeatureMaxSelector,
    SelectFirstFeatures,
    SelectNBestFeatures,
    SelectRandomFeatures,
    SelectUniformBestFeatures,
)


def create_selector(config: ConfigMaxSelector = None) -> FeatureMaxSelector:
    if config is None:
        config = ConfigMaxSelector()

    if config.type == MaxSelectorTypes.BEST_N:
        return SelectNBestFeatures()
    if config.type == MaxSelectorTypes.RANDOM:
        return SelectRandomFeatures(config.random_seed)
    if config.type == MaxSelectorTypes.UNIFORM_BEST:
        config.uniform.check_validity()
        return SelectUniformBestFeatures(config.uniform)
    if config.type == MaxSelectorTypes.FIRST:
        return SelectFirstFeatures()
    raise ConfigurationError(f"Unknown selector type {config.type!r}")
