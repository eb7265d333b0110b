"""Show the retry delay schedule of the configured policy."""

from dataclasses import replace

import click

from feature_loader.cli.context import get_context
from feature_loader.cli.output import emit_error, emit_success
from feature_loader.core.resilience import RetryManager
from feature_loader.core.resilience.retry import JITTER_RATIO


@click.command("backoff")
@click.option(
    "--attempts",
    type=click.IntRange(min=1),
    default=None,
    help="Attempts to plan for (defaults to the configured max_attempts).",
)
@click.pass_context
def backoff_cmd(ctx: click.Context, attempts: int) -> None:
    """Print the delay before each retry.

    Delays are shown without jitter; with jitter enabled each actual delay
    falls between ``min_delay`` and ``max_delay``.
    """
    config = get_context(ctx).config
    try:
        retry_config = config.retry_config()
    except ValueError as e:
        emit_error(
            f"Invalid retry configuration: {e}",
            code="VALIDATION_ERROR",
            error_type="validation",
            remediation="Fix the [retry] section or FEATURE_LOADER_* overrides",
        )

    planned = attempts or retry_config.max_attempts
    manager = RetryManager(replace(retry_config, jitter=False))

    schedule = []
    for attempt in range(1, planned):
        delay = manager.calculate_delay(attempt)
        entry = {"after_attempt": attempt, "delay": delay}
        if retry_config.jitter:
            entry["min_delay"] = delay * (1.0 - JITTER_RATIO)
            entry["max_delay"] = min(delay * (1.0 + JITTER_RATIO), retry_config.max_delay)
        schedule.append(entry)

    emit_success(
        {
            "attempts": planned,
            "jitter": retry_config.jitter,
            "schedule": schedule,
            "total_delay": sum(entry["delay"] for entry in schedule),
            "retry_config": retry_config.to_dict(),
        },
        warnings=config.startup_warnings,
    )
