"""
Observability utilities for feature-loader.

Provides structured audit logging for module loading. Audit records go to
the ``feature_loader.core.observability.audit.audit`` logger and carry the
correlation id of the load request that produced them:

    from feature_loader.core.observability import audit_log

    audit_log("retry_attempt", module_id="expenses", attempt=2, delay=0.4)
"""

from feature_loader.core.observability.audit import (
    AUDIT_LOGGER_NAME,
    AuditEvent,
    AuditEventType,
    AuditLogger,
    audit_log,
    get_audit_logger,
)

__all__ = [
    "AUDIT_LOGGER_NAME",
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "audit_log",
    "get_audit_logger",
]
