"""Translate load failures into error envelopes.

Orchestrator exceptions are looked up by exact type in ERROR_MAPPINGS.
Anything else a module loader raised is classified first and mapped by
its ErrorKind.

Usage:
    from feature_loader.core.errors import load_failure_to_response

    try:
        await orchestrator.load_module(descriptor, principal)
    except Exception as e:
        emit(load_failure_to_response(e, descriptor.id))
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional, Tuple, Type

from feature_loader.core.errors.loading import (
    CircuitOpenError,
    InvalidStateTransitionError,
    ModuleNotRegisteredError,
    ModulePermissionError,
)
from feature_loader.core.resilience.classifier import classify_error
from feature_loader.core.resilience.models import ErrorKind
from feature_loader.core.responses.builders import error_response
from feature_loader.core.responses.types import ErrorCode, ErrorType

ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, ErrorType]] = {
    CircuitOpenError: (ErrorCode.CIRCUIT_OPEN, ErrorType.UNAVAILABLE),
    ModulePermissionError: (ErrorCode.FORBIDDEN, ErrorType.AUTHORIZATION),
    InvalidStateTransitionError: (ErrorCode.INVALID_STATE_TRANSITION, ErrorType.CONFLICT),
    ModuleNotRegisteredError: (ErrorCode.MODULE_NOT_FOUND, ErrorType.NOT_FOUND),
}

KIND_MAPPINGS: Dict[ErrorKind, Tuple[ErrorCode, ErrorType]] = {
    ErrorKind.NETWORK_ERROR: (ErrorCode.NETWORK_ERROR, ErrorType.UNAVAILABLE),
    ErrorKind.TIMEOUT: (ErrorCode.LOAD_TIMEOUT, ErrorType.UNAVAILABLE),
    ErrorKind.CHUNK_LOAD_ERROR: (ErrorCode.CHUNK_LOAD_FAILED, ErrorType.UNAVAILABLE),
    ErrorKind.PERMISSION_DENIED: (ErrorCode.FORBIDDEN, ErrorType.AUTHORIZATION),
    ErrorKind.MODULE_ERROR: (ErrorCode.MODULE_ERROR, ErrorType.INTERNAL),
}


def error_to_response(exc: Exception) -> Optional[dict]:
    """Envelope dict for an orchestrator exception, or None for anything else.

    Subclasses are not matched; only the exact registered type counts.
    """
    mapping = ERROR_MAPPINGS.get(type(exc))
    if mapping is None:
        return None

    code, error_type = mapping
    data: Dict[str, Any] = {}
    module_id = getattr(exc, "module_id", None)
    if module_id:
        data["module_id"] = module_id
    if isinstance(exc, CircuitOpenError) and exc.retry_after is not None:
        data["retry_after"] = round(exc.retry_after, 3)
    if isinstance(exc, ModulePermissionError):
        data["loading_error"] = exc.loading_error.to_dict()

    return asdict(error_response(str(exc), data=data, error_code=code, error_type=error_type))


def load_failure_to_response(exc: Exception, module_id: str) -> dict:
    """Envelope dict for any exception raised while loading ``module_id``."""
    known = error_to_response(exc)
    if known is not None:
        return known

    classification = classify_error(exc)
    code, error_type = KIND_MAPPINGS[classification.kind]
    return asdict(
        error_response(
            str(exc) or type(exc).__name__,
            data={
                "module_id": module_id,
                "kind": classification.kind.value,
                "retryable": classification.retryable,
                "exception_type": type(exc).__name__,
            },
            error_code=code,
            error_type=error_type,
        )
    )
