"""Per-invocation CLI context shared by all commands."""

from dataclasses import dataclass

import click

from feature_loader.config import LoaderConfig


@dataclass
class CliContext:
    """State built by the root ``cli`` group."""

    config: LoaderConfig


def get_context(ctx: click.Context) -> CliContext:
    """Get the CliContext stored on the root click context."""
    cli_ctx = ctx.find_object(CliContext)
    if cli_ctx is None:
        raise click.UsageError("CLI context not initialized")
    return cli_ctx
