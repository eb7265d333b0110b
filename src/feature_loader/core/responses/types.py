"""
Envelope types shared by every feature-loader response.

A response is ``{"success", "data", "error", "meta"}``; error details such
as ``error_code`` and ``error_type`` travel inside ``data``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from feature_loader.core.context import get_correlation_id

RESPONSE_VERSION = "response-v2"


class ErrorCode(str, Enum):
    """Machine-readable failure codes for module operations."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    NOT_FOUND = "NOT_FOUND"
    MODULE_NOT_FOUND = "MODULE_NOT_FOUND"

    FORBIDDEN = "FORBIDDEN"

    # One per classified load failure kind
    NETWORK_ERROR = "NETWORK_ERROR"
    LOAD_TIMEOUT = "LOAD_TIMEOUT"
    CHUNK_LOAD_FAILED = "CHUNK_LOAD_FAILED"
    MODULE_ERROR = "MODULE_ERROR"

    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    OPERATION_FAILED = "OPERATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNAVAILABLE = "UNAVAILABLE"


class ErrorType(str, Enum):
    """Coarse failure category, telling a caller whether waiting helps.

    Only ``UNAVAILABLE`` failures are worth retrying after a delay.
    """

    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"


@dataclass
class ResponseEnvelope:
    """One module operation result, serialized with ``dataclasses.asdict``."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=lambda: {"version": RESPONSE_VERSION})


def build_meta(warnings: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Response metadata, tagged with the active load correlation id if any."""
    meta: Dict[str, Any] = {"version": RESPONSE_VERSION}
    correlation_id = get_correlation_id()
    if correlation_id:
        meta["request_id"] = correlation_id
    if warnings:
        meta["warnings"] = list(warnings)
    return meta
