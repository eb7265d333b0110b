"""Configuration package for feature-loader.

Sub-modules:
    parsing    - Boolean and log-level parsing helpers
    domains    - RetrySettings, LoadingSettings
    settings   - LoaderConfig dataclass, get_config/set_config globals
    loader     - LoaderConfig loading/validation mixin (_LoaderConfigLoader)
"""

from feature_loader.config.domains import LoadingSettings, RetrySettings
from feature_loader.config.settings import (
    _PACKAGE_VERSION,
    LoaderConfig,
    get_config,
    set_config,
)

__all__ = [
    "_PACKAGE_VERSION",
    "LoaderConfig",
    "LoadingSettings",
    "RetrySettings",
    "get_config",
    "set_config",
]
