"""Entry point for the ``feature-loader`` command line tool."""

import click

from feature_loader.cli.commands import backoff_cmd, load_cmd, modules_cmd
from feature_loader.cli.context import CliContext
from feature_loader.config import _PACKAGE_VERSION, LoaderConfig

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML config file (replaces the layered lookup).",
)
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.version_option(version=_PACKAGE_VERSION, prog_name="feature-loader")
@click.pass_context
def cli(ctx: click.Context, config_file: str, log_level: str) -> None:
    """Resilient feature module loading."""
    config = LoaderConfig.from_env(config_file)
    if log_level:
        config.log_level = log_level.upper()
    config.setup_logging()
    ctx.obj = CliContext(config=config)


cli.add_command(modules_cmd)
cli.add_command(load_cmd)
cli.add_command(backoff_cmd)


if __name__ == "__main__":
    cli()
