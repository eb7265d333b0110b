"""LoaderConfig loading and validation logic.

Provides ``_LoaderConfigLoader``, a mixin class whose methods are inherited by
``LoaderConfig`` (defined in ``settings.py``). Invalid values never abort
startup: they are skipped and reported through ``startup_warnings``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, cast

if TYPE_CHECKING:
    from feature_loader.config.settings import LoaderConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from pydantic import ValidationError

from feature_loader.config.domains import LoadingSettings, RetrySettings
from feature_loader.config.parsing import _normalize_log_level, _parse_bool, _try_parse_bool
from feature_loader.core.registry import ModuleDescriptor
from feature_loader.core.resilience.models import RetryConfig

logger = logging.getLogger(__name__)

_ENV_PREFIX = "FEATURE_LOADER_"


class _LoaderConfigLoader:
    """Mixin providing config-loading methods for ``LoaderConfig``.

    At runtime ``self`` is always a ``LoaderConfig`` instance.
    """

    if TYPE_CHECKING:
        log_level: str
        structured_logging: bool
        retry: RetrySettings
        loading: LoadingSettings
        modules: List[ModuleDescriptor]
        startup_warnings: List[str]

        def _add_startup_warning(self, message: str) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "LoaderConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. Project TOML config (./feature-loader.toml)
        3. User TOML config (~/.feature-loader.toml)
        4. XDG config (~/.config/feature-loader/config.toml)
        5. Default values

        An explicit ``config_file`` (or FEATURE_LOADER_CONFIG_FILE) replaces
        the layered lookup.
        """
        config = cls()

        toml_path = config_file or os.environ.get(f"{_ENV_PREFIX}CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
            xdg_config = Path(xdg_config_home) / "feature-loader" / "config.toml"
            if xdg_config.exists():
                config._load_toml(xdg_config)
                logger.debug("Loaded XDG config from %s", xdg_config)

            home_config = Path.home() / ".feature-loader.toml"
            if home_config.exists():
                config._load_toml(home_config)
                logger.debug("Loaded user config from %s", home_config)

            project_config = Path("feature-loader.toml")
            if project_config.exists():
                config._load_toml(project_config)
                logger.debug("Loaded project config from %s", project_config)

        config._load_env()
        config._validate_startup_configuration()

        return cast("LoaderConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            self._add_startup_warning(f"Config file not found: {path}")
            logger.warning("Config file not found: %s", path)
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            self._add_startup_warning(f"Error loading config file {path}: {e}")
            logger.error("Error loading config file %s: %s", path, e)
            return

        # Logging settings
        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = _normalize_log_level(log["level"])
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

        # Retry settings
        if "retry" in data:
            try:
                self.retry = RetrySettings.from_toml_dict(data["retry"])
            except (TypeError, ValueError) as e:
                self._add_startup_warning(f"Ignoring [retry] from {path}: {e}")

        # Loading settings
        if "loading" in data:
            try:
                self.loading = LoadingSettings.from_toml_dict(data["loading"])
            except (TypeError, ValueError) as e:
                self._add_startup_warning(f"Ignoring [loading] from {path}: {e}")

        # Module registry; a later file's [[modules]] replaces earlier ones
        if "modules" in data:
            self.modules = self._parse_modules(data["modules"], source=str(path))

    def _parse_modules(self, entries: Any, *, source: str) -> List[ModuleDescriptor]:
        if not isinstance(entries, list):
            self._add_startup_warning(
                f"Ignoring modules from {source}: expected an array of tables"
            )
            return []

        modules: List[ModuleDescriptor] = []
        seen: Dict[str, int] = {}
        for index, entry in enumerate(entries):
            try:
                descriptor = ModuleDescriptor.model_validate(entry)
            except ValidationError as e:
                self._add_startup_warning(
                    f"Ignoring modules[{index}] from {source}: "
                    f"{e.error_count()} validation error(s)"
                )
                continue
            if descriptor.id in seen:
                self._add_startup_warning(
                    f"Ignoring modules[{index}] from {source}: duplicate id '{descriptor.id}'"
                )
                continue
            seen[descriptor.id] = index
            modules.append(descriptor)
        return modules

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if level := os.environ.get(f"{_ENV_PREFIX}LOG_LEVEL"):
            self.log_level = _normalize_log_level(level)
        if structured := os.environ.get(f"{_ENV_PREFIX}STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

        self._env_number("MAX_ATTEMPTS", "max_attempts", int)
        self._env_number("BASE_DELAY", "base_delay", float)
        self._env_number("MAX_DELAY", "max_delay", float)
        self._env_number("BACKOFF_MULTIPLIER", "backoff_multiplier", float)
        self._env_number("CIRCUIT_THRESHOLD", "circuit_breaker_threshold", int)
        self._env_number("CIRCUIT_COOLDOWN", "circuit_breaker_cooldown", float)

        if jitter := os.environ.get(f"{_ENV_PREFIX}JITTER"):
            parsed = _try_parse_bool(jitter)
            if parsed is None:
                self._add_startup_warning(
                    f"Ignoring {_ENV_PREFIX}JITTER: expected true/false, got {jitter!r}"
                )
            else:
                self.retry.jitter = parsed

        if slow := os.environ.get(f"{_ENV_PREFIX}SLOW_THRESHOLD"):
            try:
                value = float(slow)
                if value <= 0:
                    raise ValueError("must be > 0")
                self.loading.slow_threshold = value
            except ValueError:
                self._add_startup_warning(
                    f"Ignoring {_ENV_PREFIX}SLOW_THRESHOLD: expected a positive number, got {slow!r}"
                )

    def _env_number(self, suffix: str, attr: str, kind: type) -> None:
        raw = os.environ.get(f"{_ENV_PREFIX}{suffix}")
        if not raw:
            return
        try:
            setattr(self.retry, attr, kind(raw))
        except ValueError:
            self._add_startup_warning(
                f"Ignoring {_ENV_PREFIX}{suffix}: expected {kind.__name__}, got {raw!r}"
            )

    def _validate_startup_configuration(self) -> None:
        """Fall back to default retry settings if the merged ones are invalid."""
        try:
            self.retry.to_retry_config()
        except ValueError as e:
            self._add_startup_warning(f"Invalid retry settings ({e}); using defaults")
            self.retry = RetrySettings()

    def retry_config(self) -> RetryConfig:
        """Immutable RetryConfig for the merged settings."""
        return self.retry.to_retry_config()
