"""Tests for audit events and load correlation context."""

import logging

from feature_loader.core.context import (
    correlation_scope,
    get_correlation_id,
    get_principal_id,
)
from feature_loader.core.observability import AuditEvent, AuditEventType, audit_log

AUDIT_LOGGER = "feature_loader.core.observability.audit.audit"


class TestCorrelationScope:
    """Tests for correlation_scope."""

    def test_defaults_outside_scope(self):
        assert get_correlation_id() == ""
        assert get_principal_id() == "anonymous"

    def test_generated_id(self):
        with correlation_scope() as cid:
            assert cid.startswith("load_")
            assert get_correlation_id() == cid
        assert get_correlation_id() == ""

    def test_explicit_ids_restored(self):
        with correlation_scope("load_outer", principal_id="u-1"):
            with correlation_scope("load_inner"):
                assert get_correlation_id() == "load_inner"
                assert get_principal_id() == "u-1"
            assert get_correlation_id() == "load_outer"
        assert get_principal_id() == "anonymous"


class TestAuditEvents:
    """Tests for audit record construction."""

    def test_event_picks_up_context(self):
        with correlation_scope("load_abc", principal_id="u-7"):
            event = AuditEvent(event_type=AuditEventType.LOAD_STARTED, module_id="expenses")

        data = event.to_dict()
        assert data["event_type"] == "load_started"
        assert data["correlation_id"] == "load_abc"
        assert data["principal_id"] == "u-7"
        assert data["module_id"] == "expenses"

    def test_anonymous_principal_omitted(self):
        data = AuditEvent(event_type=AuditEventType.SLOW_LOADING).to_dict()
        assert "principal_id" not in data
        assert "correlation_id" not in data

    def test_audit_log_record(self, caplog):
        with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER):
            audit_log("module_unloaded", module_id="expenses", was_loaded=True)

        [record] = [r for r in caplog.records if hasattr(r, "audit")]
        assert record.getMessage() == "AUDIT: module_unloaded"
        assert record.audit["details"] == {"was_loaded": True}

    def test_unknown_event_type(self, caplog):
        with caplog.at_level(logging.INFO, logger="feature_loader"):
            audit_log("teleported", module_id="expenses")

        [record] = [r for r in caplog.records if hasattr(r, "audit")]
        assert record.audit["event_type"] == "load_failed"
        assert record.audit["details"]["original_event_type"] == "teleported"
        assert "Unknown audit event type" in caplog.text
