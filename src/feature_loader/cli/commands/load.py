"""Load feature modules through the orchestrator.

Modules are loaded one after another with ``activate=True``, the way a UI
shell switches between screens: each successful load unloads the module
loaded before it.
"""

import asyncio
from typing import Any, Dict, List, Tuple

import click

from feature_loader.cli.context import get_context
from feature_loader.cli.output import emit_error, emit_success
from feature_loader.config import LoaderConfig
from feature_loader.core.authorization import Role, RoleHierarchyGate
from feature_loader.core.errors import load_failure_to_response
from feature_loader.core.loading import LoadingStateManager
from feature_loader.core.orchestrator import ModuleLoadOrchestrator
from feature_loader.core.registry import ModuleDescriptor, Principal
from feature_loader.core.resilience import RetryManager


@click.command("load")
@click.argument("module_ids", nargs=-1, required=True)
@click.option(
    "--role",
    required=True,
    type=click.Choice([role.value for role in Role], case_sensitive=False),
    help="Role of the requesting user.",
)
@click.option("--user", "user_id", default="cli", show_default=True, help="Requesting user id.")
@click.pass_context
def load_cmd(ctx: click.Context, module_ids: Tuple[str, ...], role: str, user_id: str) -> None:
    """Load MODULE_IDS in order and report each outcome."""
    config = get_context(ctx).config
    registry = config.build_registry()

    unknown = [module_id for module_id in module_ids if module_id not in registry]
    if unknown:
        emit_error(
            f"Module not registered: {', '.join(unknown)}",
            code="MODULE_NOT_FOUND",
            error_type="not_found",
            remediation="Add the module to a [[modules]] table in feature-loader.toml",
            details={"module_ids": unknown},
        )

    descriptors = [registry.get(module_id) for module_id in module_ids]
    principal = Principal(user_id=user_id, role=role)
    report = asyncio.run(_load_sequence(config, descriptors, principal))

    failed = [outcome for outcome in report["outcomes"] if not outcome["success"]]
    if failed:
        emit_error(
            f"{len(failed)} of {len(descriptors)} module load(s) failed",
            code="OPERATION_FAILED",
            error_type="unavailable",
            data=report,
        )

    emit_success(report, warnings=config.startup_warnings)


async def _load_sequence(
    config: LoaderConfig,
    descriptors: List[ModuleDescriptor],
    principal: Principal,
) -> Dict[str, Any]:
    retry_manager = RetryManager(config.retry_config())
    loading_state = LoadingStateManager(slow_threshold=config.loading.slow_threshold)
    orchestrator = ModuleLoadOrchestrator(
        RoleHierarchyGate(),
        retry_manager=retry_manager,
        loading_state=loading_state,
        load_timeout=config.loading.load_timeout,
        cache_ttl=config.loading.cache_ttl,
        max_cached=config.loading.max_cached,
    )

    outcomes: List[Dict[str, Any]] = []
    for descriptor in descriptors:
        try:
            module = await orchestrator.load_module(descriptor, principal)
        except Exception as e:
            outcomes.append(
                {
                    "module_id": descriptor.id,
                    "success": False,
                    "error": load_failure_to_response(e, descriptor.id),
                }
            )
            continue
        outcomes.append(
            {
                "module_id": descriptor.id,
                "success": True,
                "module": getattr(module, "__name__", repr(module)),
            }
        )

    report = {
        "outcomes": outcomes,
        "active_module_id": orchestrator.active_module_id,
        "loading_states": {
            module_id: state.to_dict()
            for module_id, state in loading_state.get_all_states().items()
        },
        "retry_stats": {
            descriptor.id: retry_manager.get_retry_stats(descriptor.id).to_dict()
            for descriptor in descriptors
        },
        "global_stats": retry_manager.get_global_stats().to_dict(),
    }
    orchestrator.cleanup()
    return report
