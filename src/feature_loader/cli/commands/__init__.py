"""CLI commands."""

from feature_loader.cli.commands.backoff import backoff_cmd
from feature_loader.cli.commands.load import load_cmd
from feature_loader.cli.commands.modules import modules_cmd

__all__ = [
    "backoff_cmd",
    "load_cmd",
    "modules_cmd",
]
