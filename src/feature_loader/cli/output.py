"""JSON envelope output for CLI commands.

Every command prints exactly one response envelope to stdout:
``{"success": ..., "data": ..., "error": ..., "meta": ...}``. Errors exit
with status 1.
"""

import json
import sys
from dataclasses import asdict
from typing import Any, Dict, Mapping, NoReturn, Optional, Sequence

import click

from feature_loader.core.responses import error_response, success_response


def _echo(payload: Dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def emit_success(
    data: Mapping[str, Any],
    *,
    warnings: Optional[Sequence[str]] = None,
) -> None:
    """Print a success envelope."""
    _echo(asdict(success_response(data, warnings=warnings)))


def emit_error(
    message: str,
    *,
    code: str,
    error_type: str,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    data: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Print an error envelope and exit with status 1."""
    _echo(
        asdict(
            error_response(
                message,
                data=data,
                error_code=code,
                error_type=error_type,
                remediation=remediation,
                details=details,
            )
        )
    )
    sys.exit(1)
