"""Audit trail for module loads.

Each record is an INFO line ``AUDIT: <event_type>`` on its own logger with
the event dict attached as ``record.audit``, so handlers can route the trail
separately from diagnostics.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from feature_loader.core.context import get_correlation_id, get_principal_id

logger = logging.getLogger(__name__)

AUDIT_LOGGER_NAME = f"{__name__}.audit"


class AuditEventType(Enum):
    LOAD_STARTED = "load_started"
    LOAD_SUCCEEDED = "load_succeeded"
    LOAD_FAILED = "load_failed"
    LOAD_DISREGARDED = "load_disregarded"
    RETRY_ATTEMPT = "retry_attempt"
    CIRCUIT_STATE_CHANGE = "circuit_state_change"
    PERMISSION_DENIED = "permission_denied"
    MODULE_UNLOADED = "module_unloaded"
    SLOW_LOADING = "slow_loading"
    CONFIG_CHANGE = "config_change"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuditEvent:
    """One audit record.

    The correlation and principal ids default to the enclosing
    ``correlation_scope``; the anonymous principal is never recorded.
    """

    event_type: AuditEventType
    module_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_now)
    correlation_id: Optional[str] = None
    principal_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.correlation_id is None:
            self.correlation_id = get_correlation_id() or None
        if self.principal_id is None and get_principal_id() != "anonymous":
            self.principal_id = get_principal_id()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }
        optional = (
            ("correlation_id", self.correlation_id),
            ("principal_id", self.principal_id),
            ("module_id", self.module_id),
        )
        data.update({key: value for key, value in optional if value})
        return data


class AuditLogger:
    """Writes audit events, with typed helpers for the structured ones."""

    def __init__(self, name: str = AUDIT_LOGGER_NAME):
        self._logger = logging.getLogger(name)

    def log(self, event: AuditEvent) -> None:
        self._logger.info("AUDIT: %s", event.event_type.value, extra={"audit": event.to_dict()})

    def emit(self, event_type: AuditEventType, module_id: Optional[str], **details: Any) -> None:
        self.log(AuditEvent(event_type=event_type, module_id=module_id, details=details))

    def permission_denied(
        self,
        module_id: str,
        role: Optional[str] = None,
        required_role: Optional[str] = None,
        **details: Any,
    ) -> None:
        self.emit(
            AuditEventType.PERMISSION_DENIED,
            module_id,
            role=role,
            required_role=required_role,
            **details,
        )

    def circuit_state_change(
        self,
        module_id: str,
        old_state: str,
        new_state: str,
        **details: Any,
    ) -> None:
        self.emit(
            AuditEventType.CIRCUIT_STATE_CHANGE,
            module_id,
            old_state=old_state,
            new_state=new_state,
            **details,
        )


_audit = AuditLogger()


def get_audit_logger() -> AuditLogger:
    return _audit


def audit_log(event_type: str, module_id: Optional[str] = None, **details: Any) -> None:
    """Record an audit event by its string name.

    Unknown names are recorded as ``load_failed`` with the given name kept
    in ``details["original_event_type"]``.

    Args:
        event_type: An AuditEventType value, e.g. ``"retry_attempt"``
        module_id: Module the event concerns
        **details: Extra fields for the record's ``details``
    """
    try:
        kind = AuditEventType(event_type)
    except ValueError:
        logger.warning("Unknown audit event type '%s', recording as load_failed", event_type)
        kind = AuditEventType.LOAD_FAILED
        details["original_event_type"] = event_type

    _audit.emit(kind, module_id, **details)
