"""List the feature modules declared in the configuration."""

import click

from feature_loader.cli.context import get_context
from feature_loader.cli.output import emit_success


@click.command("modules")
@click.option("--preload-only", is_flag=True, help="Only list modules marked for preloading.")
@click.pass_context
def modules_cmd(ctx: click.Context, preload_only: bool) -> None:
    """List registered feature modules."""
    config = get_context(ctx).config
    registry = config.build_registry()
    descriptors = registry.preloadable() if preload_only else registry.list()

    emit_success(
        {
            "modules": [descriptor.model_dump() for descriptor in descriptors],
            "count": len(descriptors),
        },
        warnings=config.startup_warnings,
    )
