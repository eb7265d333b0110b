"""Constructors for success and error envelopes."""

from typing import Any, Dict, Mapping, Optional, Sequence, Union

from feature_loader.core.responses.types import (
    ErrorCode,
    ErrorType,
    ResponseEnvelope,
    build_meta,
)


def _enum_value(value: Union[ErrorCode, ErrorType, str]) -> str:
    return getattr(value, "value", value)


def success_response(
    data: Optional[Mapping[str, Any]] = None,
    *,
    warnings: Optional[Sequence[str]] = None,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        success=True,
        data=dict(data or {}),
        meta=build_meta(warnings),
    )


def error_response(
    message: str,
    *,
    data: Optional[Mapping[str, Any]] = None,
    error_code: Union[ErrorCode, str] = ErrorCode.INTERNAL_ERROR,
    error_type: Union[ErrorType, str] = ErrorType.INTERNAL,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> ResponseEnvelope:
    """Create an error envelope.

    ``error_code`` and ``error_type`` are written into ``data`` unless the
    caller already supplied them there.

    Example:
        >>> error_response(
        ...     "Module not registered: payroll",
        ...     error_code=ErrorCode.MODULE_NOT_FOUND,
        ...     error_type=ErrorType.NOT_FOUND,
        ...     remediation="Add the module to the [[modules]] table",
        ... )
    """
    payload: Dict[str, Any] = dict(data or {})
    payload.setdefault("error_code", _enum_value(error_code))
    payload.setdefault("error_type", _enum_value(error_type))
    if remediation is not None:
        payload.setdefault("remediation", remediation)
    if details:
        payload.setdefault("details", dict(details))

    return ResponseEnvelope(success=False, data=payload, error=message, meta=build_meta())
