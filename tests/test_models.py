"""
Tests for PaiseGone models

Test strategy:
1. Unit tests for individual components (models, validators, engine)
2. Integration tests for flows (in-memory and temp-directory storage)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError

from paisegone.models.ledger import (
    UNKNOWN_MEMBER_NAME,
    DateRange,
    Expense,
    ExpenseDraft,
    GroupSettings,
    LedgerSnapshot,
    Member,
)
from paisegone.models.settlement import BalanceStatus, MemberBalance
from paisegone.models.validation import ValidationIssue, ValidationResult
from paisegone.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestMemberModel:
    """Tests for the Member model."""

    def test_member_strips_whitespace(self):
        """Test that whitespace is stripped from the display name."""
        member = Member(id="1", name="  Rahim  ")
        assert member.name == "Rahim"

    def test_member_rejects_blank_name(self):
        """Test that a whitespace-only name is rejected."""
        with pytest.raises(ValueError):
            Member(id="1", name="   ")

    def test_blank_contact_becomes_none(self):
        """Test that an empty contact is stored as absent."""
        assert Member(id="1", name="Rahim", contact="  ").contact is None

    def test_member_is_immutable(self):
        """Test that members cannot be changed in place."""
        member = Member(id="1", name="Rahim")
        with pytest.raises(PydanticValidationError):
            member.name = "Karim"


class TestExpenseModels:
    """Tests for ExpenseDraft and Expense."""

    def test_zero_contributions_are_dropped(self):
        """Test that a zero amount means 'did not pay' and is not stored."""
        draft = ExpenseDraft(
            date=date(2024, 10, 1),
            details="Rice",
            cost=Decimal("500"),
            contributions={"1": Decimal("500"), "2": Decimal("0")},
        )
        assert draft.contributions == {"1": Decimal("500")}

    def test_negative_contribution_rejected(self):
        """Test that negative contributions are rejected."""
        with pytest.raises(ValueError, match="cannot be negative"):
            ExpenseDraft(
                date=date(2024, 10, 1),
                details="Rice",
                cost=Decimal("500"),
                contributions={"1": Decimal("-500")},
            )

    def test_non_positive_cost_rejected(self):
        """Test that cost must be greater than zero."""
        with pytest.raises(ValueError):
            ExpenseDraft(date=date(2024, 10, 1), details="Rice", cost=Decimal("0"))

    def test_contributed_total(self):
        """Test contributed_total sums every contribution."""
        draft = ExpenseDraft(
            date=date(2024, 10, 1),
            details="Chicken, Potato",
            cost=Decimal("800"),
            contributions={"2": Decimal("400"), "3": Decimal("400")},
        )
        assert draft.contributed_total == Decimal("800")

    def test_expense_to_draft(self):
        """Test that to_draft drops only the id."""
        expense = Expense(
            id="e1",
            date=date(2024, 10, 1),
            details="Rice",
            cost=Decimal("500"),
            contributions={"1": Decimal("500")},
        )
        draft = expense.to_draft()
        assert not isinstance(draft, Expense)
        assert draft.details == "Rice"
        assert draft.contributions == {"1": Decimal("500")}


class TestGroupSettings:
    """Tests for the free-form settings blob."""

    def test_defaults(self):
        """Test default currency, timezone and theme."""
        settings = GroupSettings()
        assert settings.currency_symbol == "₹"
        assert settings.timezone == "UTC"
        assert settings.theme == "light"

    def test_unknown_timezone_rejected(self):
        """Test that timezones must be valid IANA names."""
        with pytest.raises(ValueError, match="Unknown timezone"):
            GroupSettings(timezone="Mars/Olympus_Mons")

    def test_extra_keys_kept(self):
        """Test that keys written by other clients survive."""
        settings = GroupSettings(language="bn")
        assert settings.model_dump()["language"] == "bn"


class TestDateRange:
    """Tests for DateRange."""

    def test_end_before_start_rejected(self):
        """Test that end cannot be before start."""
        with pytest.raises(ValueError, match="Date range end cannot be before start"):
            DateRange(start=date(2024, 10, 10), end=date(2024, 10, 1))

    def test_contains_is_inclusive(self):
        """Test both ends are included."""
        window = DateRange(start=date(2024, 10, 1), end=date(2024, 10, 31))
        assert window.contains(date(2024, 10, 1))
        assert window.contains(date(2024, 10, 31))
        assert not window.contains(date(2024, 11, 1))

    def test_open_ended_range(self):
        """Test that a missing end leaves the range open."""
        window = DateRange(start=date(2024, 10, 1))
        assert window.contains(date(2030, 1, 1))
        assert not window.contains(date(2024, 9, 30))

    def test_month_of_leap_february(self):
        """Test month_of picks the right last day."""
        window = DateRange.month_of(date(2024, 2, 10))
        assert window.start == date(2024, 2, 1)
        assert window.end == date(2024, 2, 29)


class TestLedgerSnapshot:
    """Tests for snapshot helpers."""

    def _expense(self, expense_id, day):
        return Expense(
            id=expense_id,
            date=day,
            details=f"Item {expense_id}",
            cost=Decimal("100"),
            contributions={"1": Decimal("100")},
        )

    def test_member_name_for_removed_member(self):
        """Test that dangling contributor ids resolve to Unknown."""
        snapshot = LedgerSnapshot(members=(Member(id="1", name="Rahim"),))
        assert snapshot.member_name("1") == "Rahim"
        assert snapshot.member_name("gone") == UNKNOWN_MEMBER_NAME

    def test_expenses_newest_first(self):
        """Test newest date first, later insertion first on ties."""
        snapshot = LedgerSnapshot(expenses=(
            self._expense("a", date(2024, 10, 2)),
            self._expense("b", date(2024, 10, 5)),
            self._expense("c", date(2024, 10, 2)),
        ))
        ordered = [e.id for e in snapshot.expenses_newest_first()]
        assert ordered == ["b", "c", "a"]


class TestMemberBalance:
    """Tests for balance status."""

    @pytest.mark.parametrize("balance,expected", [
        (Decimal("5"), BalanceStatus.RECEIVABLE),
        (Decimal("-5"), BalanceStatus.PAYABLE),
        (Decimal("0.004"), BalanceStatus.SETTLED),
        (Decimal("-0.01"), BalanceStatus.SETTLED),
    ])
    def test_status_uses_epsilon(self, balance, expected):
        """Test that tiny balances count as settled."""
        member_balance = MemberBalance(
            member_id="1",
            name="Rahim",
            paid=Decimal("0"),
            share=Decimal("0"),
            balance=balance,
        )
        assert member_balance.status() == expected


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            description="Member added",
        )
        assert event.event_type == AuditEventType.MEMBER_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.expense_added("e1", "Rice", "1500")
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "expense_added"
        assert log_dict["entity_id"] == "e1"
        assert log_dict["details"]["cost"] == "1500"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.member_added("m1", "Rahim")
        row = event.to_sheets_row()
        assert len(row) == 10  # Expected number of columns
        assert row[2] == "member_added"  # event_type
        assert row[5] == "m1"  # entity_id
        assert row[9] == "True"  # is_user_action

    def test_contact_value_not_logged(self):
        """Test that phone numbers stay out of the audit trail."""
        event = AuditEventBuilder.member_contact_updated("m1", has_contact=True)
        assert event.details == {"has_contact": True}

    def test_validation_failed_entity_type(self):
        """Test that the entity type follows the operation."""
        issues = [{"field": "name", "type": "string_too_short", "message": "x"}]
        assert AuditEventBuilder.validation_failed("add_expense", issues).entity_type == "expense"
        assert AuditEventBuilder.validation_failed("update_settings", issues).entity_type == "settings"
        assert AuditEventBuilder.validation_failed("rename_member", issues).entity_type == "member"

    def test_consistency_violation_is_critical(self):
        """Test that settlement defects are logged at critical severity."""
        event = AuditEventBuilder.consistency_violation("drift", {"drift": "5"})
        assert event.severity == AuditSeverity.CRITICAL
        assert event.error_message == "drift"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            operation="add_expense",
            schema_valid=True,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="contributions",
                    issue_type="contributions_mismatch",
                    message="Contributions add up to 900 but the cost is 1000",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.errors[0].issue_type == "contributions_mismatch"

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            operation="add_expense",
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Expense date is in the future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_issue_severity_pattern(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(ValueError):
            ValidationIssue(
                field="x",
                issue_type="y",
                message="z",
                severity="fatal",
            )
