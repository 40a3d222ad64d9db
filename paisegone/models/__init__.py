"""
Data Models Package

This package contains all Pydantic models used by the ledger.
All data flowing through the system must conform to these schemas.
"""

from paisegone.models.ledger import (
    CONTRIBUTION_TOLERANCE,
    SETTLEMENT_EPSILON,
    UNKNOWN_MEMBER_NAME,
    ChangeKind,
    DateRange,
    Expense,
    ExpenseDraft,
    GroupSettings,
    LedgerChange,
    LedgerSnapshot,
    Member,
)
from paisegone.models.settlement import (
    BalanceStatus,
    MemberBalance,
    SettlementPlan,
    SettlementSummary,
    SettlementTransaction,
)
from paisegone.models.validation import ValidationIssue, ValidationResult
from paisegone.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CONTRIBUTION_TOLERANCE",
    "SETTLEMENT_EPSILON",
    "UNKNOWN_MEMBER_NAME",
    "ChangeKind",
    "DateRange",
    "Expense",
    "ExpenseDraft",
    "GroupSettings",
    "LedgerChange",
    "LedgerSnapshot",
    "Member",
    # Settlement models
    "BalanceStatus",
    "MemberBalance",
    "SettlementPlan",
    "SettlementSummary",
    "SettlementTransaction",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
