"""LoaderConfig dataclass and global configuration state.

This module defines the ``LoaderConfig`` class (field declarations and simple
accessor methods) and the global ``get_config`` / ``set_config`` helpers.
Loading and validation logic lives in the ``_LoaderConfigLoader`` mixin
(``loader.py``) which ``LoaderConfig`` inherits from.
"""

import logging
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_package_version
from typing import List, Optional

from feature_loader.config.domains import LoadingSettings, RetrySettings
from feature_loader.config.loader import _LoaderConfigLoader
from feature_loader.core.registry import ModuleDescriptor, ModuleRegistry


def _get_version() -> str:
    """Installed distribution version of feature-loader."""
    try:
        return get_package_version("feature-loader")
    except PackageNotFoundError:
        return "0.1.0"


_PACKAGE_VERSION = _get_version()

_HANDLER_NAME = "feature_loader"


@dataclass
class LoaderConfig(_LoaderConfigLoader):
    """Loader configuration with support for env vars and TOML overrides."""

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = False

    # Retry / circuit breaker configuration
    retry: RetrySettings = field(default_factory=RetrySettings)

    # Loading state configuration
    loading: LoadingSettings = field(default_factory=LoadingSettings)

    # Module registry entries ([[modules]])
    modules: List[ModuleDescriptor] = field(default_factory=list)

    version: str = field(default_factory=lambda: _PACKAGE_VERSION)

    startup_warnings: List[str] = field(default_factory=list, repr=False)

    def _add_startup_warning(self, message: str) -> None:
        if message and message not in self.startup_warnings:
            self.startup_warnings.append(message)

    def build_registry(self) -> ModuleRegistry:
        """Registry of the configured modules."""
        return ModuleRegistry(self.modules)

    def setup_logging(self) -> None:
        """Attach a stream handler to the ``feature_loader`` logger.

        Calling this again swaps the handler rather than adding a second one.
        """
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(formatter)

        package_logger = logging.getLogger("feature_loader")
        for existing in list(package_logger.handlers):
            if existing.get_name() == _HANDLER_NAME:
                package_logger.removeHandler(existing)
        package_logger.setLevel(level)
        package_logger.addHandler(handler)


_config: Optional[LoaderConfig] = None


def get_config() -> LoaderConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = LoaderConfig.from_env()
    return _config


def set_config(config: Optional[LoaderConfig]) -> None:
    """Set (or clear, with None) the global configuration instance."""
    global _config
    _config = config
