"""Shared fixtures for CLI command tests."""

import json
import logging

import pytest
from click.testing import CliRunner

from feature_loader.cli.main import cli

MODULES_TOML = """
[retry]
max_attempts = 2
base_delay = 0.01
max_delay = 0.05
jitter = false

[[modules]]
id = "codec"
name = "JSON Codec"
import_path = "json"
preload = true

[[modules]]
id = "reports"
name = "Reports"
required_role = "manager"
import_path = "csv"

[[modules]]
id = "ghost"
name = "Ghost"
import_path = "feature_loader_missing_module"
"""


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """TOML config with one importable, one restricted and one broken module."""
    path = tmp_path / "feature-loader.toml"
    path.write_text(MODULES_TOML)
    return path


@pytest.fixture(autouse=True)
def restore_package_logger():
    """setup_logging() reconfigures the package logger; undo it after each test."""
    package_logger = logging.getLogger("feature_loader")
    saved_level, saved_handlers = package_logger.level, list(package_logger.handlers)
    yield
    package_logger.handlers = saved_handlers
    package_logger.setLevel(saved_level)


@pytest.fixture
def invoke(cli_runner, config_file, monkeypatch):
    """Run the CLI against ``config_file`` and decode its JSON envelope."""
    for name in ("FEATURE_LOADER_CONFIG_FILE", "FEATURE_LOADER_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)

    def _invoke(*args):
        result = cli_runner.invoke(
            cli,
            ["--config", str(config_file), "--log-level", "CRITICAL", *args],
        )
        return result, json.loads(result.output)

    return _invoke
