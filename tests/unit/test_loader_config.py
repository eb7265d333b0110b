"""Tests for LoaderConfig loading from TOML files and environment variables.

Tests cover:
- Defaults when no config file exists
- Layered XDG / user / project TOML lookup
- Explicit config file replacing the layered lookup
- [[modules]] parsing with invalid and duplicate entries
- Environment overrides and invalid values reported as startup warnings
"""

import logging
import os

import pytest

from feature_loader.config import LoaderConfig, LoadingSettings, RetrySettings, get_config, set_config


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point HOME, XDG_CONFIG_HOME and cwd at empty temp directories."""
    home = tmp_path / "home"
    xdg = tmp_path / "xdg"
    project = tmp_path / "project"
    for directory in (home, xdg, project):
        directory.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.chdir(project)
    for name in list(os.environ):
        if name.startswith("FEATURE_LOADER_"):
            monkeypatch.delenv(name)

    return {"home": home, "xdg": xdg, "project": project}


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestDefaults:
    """Tests for configuration without any sources."""

    def test_defaults(self, isolated_env):
        config = LoaderConfig.from_env()

        assert config.log_level == "INFO"
        assert config.structured_logging is False
        assert config.retry == RetrySettings()
        assert config.loading == LoadingSettings()
        assert config.modules == []
        assert config.startup_warnings == []

    def test_retry_config_matches_defaults(self, isolated_env):
        retry = LoaderConfig.from_env().retry_config()
        assert retry.max_attempts == 3
        assert retry.base_delay == 1.0
        assert retry.jitter is True


class TestTomlLayering:
    """Tests for the XDG -> user -> project lookup order."""

    def test_later_layers_override(self, isolated_env):
        _write(
            isolated_env["xdg"] / "feature-loader" / "config.toml",
            "[retry]\nmax_attempts = 5\nbase_delay = 0.5\n\n[logging]\nlevel = 'debug'\n",
        )
        _write(isolated_env["home"] / ".feature-loader.toml", "[retry]\nmax_attempts = 4\n")
        _write(isolated_env["project"] / "feature-loader.toml", "[loading]\nslow_threshold = 2.5\n")

        config = LoaderConfig.from_env()

        assert config.log_level == "DEBUG"
        # A [retry] table replaces the section as a whole
        assert config.retry.max_attempts == 4
        assert config.retry.base_delay == 1.0
        assert config.loading.slow_threshold == 2.5

    def test_project_modules_replace_user_modules(self, isolated_env):
        _write(
            isolated_env["home"] / ".feature-loader.toml",
            "[[modules]]\nid = 'expenses'\nname = 'Expenses'\n",
        )
        _write(
            isolated_env["project"] / "feature-loader.toml",
            "[[modules]]\nid = 'payroll'\nname = 'Payroll'\nrequired_role = 'accountant'\n",
        )

        config = LoaderConfig.from_env()

        assert [m.id for m in config.modules] == ["payroll"]
        assert config.build_registry().get("payroll").required_role == "accountant"

    def test_explicit_file_skips_layers(self, isolated_env, tmp_path):
        _write(isolated_env["home"] / ".feature-loader.toml", "[retry]\nmax_attempts = 9\n")
        explicit = _write(tmp_path / "custom.toml", "[retry]\nmax_attempts = 2\n")

        config = LoaderConfig.from_env(str(explicit))

        assert config.retry.max_attempts == 2

    def test_config_file_env_var(self, isolated_env, tmp_path, monkeypatch):
        explicit = _write(tmp_path / "custom.toml", "[logging]\nstructured = true\n")
        monkeypatch.setenv("FEATURE_LOADER_CONFIG_FILE", str(explicit))

        assert LoaderConfig.from_env().structured_logging is True

    def test_missing_explicit_file_is_a_warning(self, isolated_env, tmp_path):
        config = LoaderConfig.from_env(str(tmp_path / "missing.toml"))
        assert any("Config file not found" in w for w in config.startup_warnings)

    def test_malformed_toml_is_a_warning(self, isolated_env, tmp_path):
        broken = _write(tmp_path / "broken.toml", "[retry\nmax_attempts = ")
        config = LoaderConfig.from_env(str(broken))

        assert any("Error loading config file" in w for w in config.startup_warnings)
        assert config.retry == RetrySettings()


class TestModulesSection:
    """Tests for [[modules]] parsing."""

    def test_invalid_and_duplicate_entries_skipped(self, isolated_env, tmp_path):
        path = _write(
            tmp_path / "modules.toml",
            """
[[modules]]
id = "expenses"
name = "Expenses"
preload = true

[[modules]]
id = "broken"

[[modules]]
id = "expenses"
name = "Expenses again"
""",
        )

        config = LoaderConfig.from_env(str(path))

        assert [m.id for m in config.modules] == ["expenses"]
        assert config.modules[0].preload is True
        assert any("modules[1]" in w for w in config.startup_warnings)
        assert any("duplicate id 'expenses'" in w for w in config.startup_warnings)

    def test_modules_not_an_array(self, isolated_env, tmp_path):
        path = _write(tmp_path / "modules.toml", "[modules]\nid = 'expenses'\n")
        config = LoaderConfig.from_env(str(path))

        assert config.modules == []
        assert any("expected an array of tables" in w for w in config.startup_warnings)


class TestLoadingSection:
    """Tests for the [loading] section."""

    def test_timeout_and_cache_settings(self, isolated_env, tmp_path):
        path = _write(
            tmp_path / "loading.toml",
            "[loading]\nload_timeout = 8\ncache_ttl = 600\nmax_cached = 10\n",
        )
        config = LoaderConfig.from_env(str(path))

        assert config.loading.load_timeout == 8.0
        assert config.loading.cache_ttl == 600.0
        assert config.loading.max_cached == 10
        assert config.loading.slow_threshold == LoadingSettings().slow_threshold

    def test_defaults_without_section(self, isolated_env):
        loading = LoaderConfig.from_env().loading

        assert loading.load_timeout is None
        assert loading.cache_ttl == 1800.0
        assert loading.max_cached == 50

    def test_module_timeout(self, isolated_env, tmp_path):
        path = _write(
            tmp_path / "modules.toml",
            "[[modules]]\nid = \"reports\"\nname = \"Reports\"\ntimeout = 15\n",
        )
        config = LoaderConfig.from_env(str(path))

        assert config.modules[0].timeout == 15.0


class TestInvalidSections:
    """Invalid values never abort startup."""

    def test_invalid_retry_section(self, isolated_env, tmp_path):
        path = _write(tmp_path / "bad.toml", "[retry]\nmax_attempts = 'many'\n")
        config = LoaderConfig.from_env(str(path))

        assert config.retry == RetrySettings()
        assert any("Ignoring [retry]" in w for w in config.startup_warnings)

    def test_invalid_loading_section(self, isolated_env, tmp_path):
        path = _write(tmp_path / "bad.toml", "[loading]\nslow_threshold = 0\n")
        config = LoaderConfig.from_env(str(path))

        assert config.loading == LoadingSettings()
        assert any("Ignoring [loading]" in w for w in config.startup_warnings)

    def test_invalid_cache_size(self, isolated_env, tmp_path):
        path = _write(tmp_path / "bad.toml", "[loading]\nmax_cached = 0\n")
        config = LoaderConfig.from_env(str(path))

        assert config.loading == LoadingSettings()
        assert any("max_cached" in w for w in config.startup_warnings)

    def test_inconsistent_retry_settings_fall_back(self, isolated_env, tmp_path):
        path = _write(tmp_path / "bad.toml", "[retry]\nbase_delay = 10.0\nmax_delay = 5.0\n")
        config = LoaderConfig.from_env(str(path))

        assert config.retry == RetrySettings()
        assert any("Invalid retry settings" in w for w in config.startup_warnings)

    def test_unknown_log_level_falls_back(self, isolated_env, tmp_path):
        path = _write(tmp_path / "bad.toml", "[logging]\nlevel = 'chatty'\n")
        assert LoaderConfig.from_env(str(path)).log_level == "INFO"


class TestEnvironmentOverrides:
    """Tests for FEATURE_LOADER_* variables."""

    def test_env_overrides_toml(self, isolated_env, monkeypatch):
        _write(isolated_env["project"] / "feature-loader.toml", "[retry]\nmax_attempts = 4\n")
        monkeypatch.setenv("FEATURE_LOADER_MAX_ATTEMPTS", "6")
        monkeypatch.setenv("FEATURE_LOADER_BASE_DELAY", "0.25")
        monkeypatch.setenv("FEATURE_LOADER_JITTER", "off")
        monkeypatch.setenv("FEATURE_LOADER_CIRCUIT_COOLDOWN", "15")
        monkeypatch.setenv("FEATURE_LOADER_SLOW_THRESHOLD", "1.5")
        monkeypatch.setenv("FEATURE_LOADER_LOG_LEVEL", "warning")

        config = LoaderConfig.from_env()

        assert config.retry.max_attempts == 6
        assert config.retry.base_delay == 0.25
        assert config.retry.jitter is False
        assert config.retry.circuit_breaker_cooldown == 15.0
        assert config.loading.slow_threshold == 1.5
        assert config.log_level == "WARNING"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("FEATURE_LOADER_MAX_ATTEMPTS", "three"),
            ("FEATURE_LOADER_JITTER", "sometimes"),
            ("FEATURE_LOADER_SLOW_THRESHOLD", "-1"),
        ],
    )
    def test_invalid_env_values_are_warnings(self, isolated_env, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        config = LoaderConfig.from_env()

        assert any(name in w for w in config.startup_warnings)
        assert config.retry_config().max_attempts == 3


class TestLoggingSetup:
    """Tests for setup_logging."""

    def test_handler_is_replaced_not_stacked(self):
        package_logger = logging.getLogger("feature_loader")
        saved_level, saved_handlers = package_logger.level, list(package_logger.handlers)
        try:
            config = LoaderConfig(log_level="DEBUG")
            config.setup_logging()
            config.setup_logging()

            named = [h for h in package_logger.handlers if h.get_name() == "feature_loader"]
            assert len(named) == 1
            assert package_logger.level == logging.DEBUG
        finally:
            package_logger.handlers = saved_handlers
            package_logger.setLevel(saved_level)


class TestGlobalConfig:
    """Tests for get_config / set_config."""

    def setup_method(self):
        set_config(None)

    def teardown_method(self):
        set_config(None)

    def test_set_config(self):
        config = LoaderConfig(log_level="ERROR")
        set_config(config)
        assert get_config() is config

    def test_get_config_builds_once(self, isolated_env):
        assert get_config() is get_config()
