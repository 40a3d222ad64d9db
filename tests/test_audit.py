"""
Tests for the audit logger.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

from paisegone.audit import AuditLogger
from paisegone.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from paisegone.models.ledger import Expense, Member


class TestAuditLogger:
    """Tests for persisting audit events."""

    def test_without_storage(self):
        """Test that logging locally only always succeeds."""
        assert AuditLogger().log(AuditEventBuilder.member_added("m1", "Rahim")) is True

    def test_events_persisted(self, audit_logger, audit_storage):
        audit_logger.log_member_added(Member(id="m1", name="Rahim"))
        audit_logger.log_expense_added(Expense(
            id="e1",
            date=date(2024, 10, 1),
            details="Rice",
            cost=Decimal("300"),
            contributions={"m1": Decimal("300")},
        ))

        events = audit_storage.get_recent_events()
        assert [e.event_type for e in events] == [
            AuditEventType.EXPENSE_ADDED,
            AuditEventType.MEMBER_ADDED,
        ]
        assert events[0].details["cost"] == "300"

    def test_storage_failure_swallowed(self):
        """Test that a broken audit backend never breaks a ledger write."""
        storage = MagicMock()
        storage.append_event.side_effect = RuntimeError("disk full")
        logger = AuditLogger(storage)
        assert logger.log(AuditEventBuilder.member_added("m1", "Rahim")) is False

    def test_consistency_violation_is_critical(self, audit_logger, audit_storage):
        audit_logger.log_consistency_violation("drift", {"drift": "-600"})
        event = audit_storage.get_recent_events()[0]
        assert event.severity == AuditSeverity.CRITICAL
        assert event.details == {"drift": "-600"}
