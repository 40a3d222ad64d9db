"""
Audit Models for PaiseGone

Every change to the shared ledger is logged for audit purposes.
This provides:
1. Traceability of who-changed-what in a shared group ledger
2. Debugging information when a balance looks wrong
3. A record of storage fallbacks, which otherwise happen silently

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Members
    MEMBER_ADDED = "member_added"
    MEMBER_RENAMED = "member_renamed"
    MEMBER_CONTACT_UPDATED = "member_contact_updated"
    MEMBER_REMOVED = "member_removed"

    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_REMOVED = "expense_removed"

    # Settings
    SETTINGS_UPDATED = "settings_updated"

    # Rejected writes
    VALIDATION_FAILED = "validation_failed"

    # Persistence
    STORAGE_FALLBACK = "storage_fallback"
    EXTERNAL_RELOAD = "external_reload"
    SAVE_FAILED = "save_failed"

    # Settlement
    SETTLEMENT_COMPUTED = "settlement_computed"
    CONSISTENCY_VIOLATION = "consistency_violation"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'member', 'expense', 'settings')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.member_added(member_id, name)
        event = AuditEventBuilder.storage_fallback("expenses", reason)
    """

    @staticmethod
    def member_added(member_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            entity_type="member",
            entity_id=member_id,
            description=f"Member added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def member_renamed(member_id: str, old_name: str, new_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_RENAMED,
            entity_type="member",
            entity_id=member_id,
            description=f"Member renamed: {old_name} -> {new_name}",
            details={"old_name": old_name, "new_name": new_name},
            is_user_action=True,
        )

    @staticmethod
    def member_contact_updated(member_id: str, has_contact: bool) -> AuditEvent:
        # Contact values are personal data and stay out of the log
        return AuditEvent(
            event_type=AuditEventType.MEMBER_CONTACT_UPDATED,
            entity_type="member",
            entity_id=member_id,
            description="Member contact updated",
            details={"has_contact": has_contact},
            is_user_action=True,
        )

    @staticmethod
    def member_removed(member_id: str, name: str, contributed_expenses: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_REMOVED,
            entity_type="member",
            entity_id=member_id,
            description=f"Member removed: {name}",
            details={
                "name": name,
                "expenses_with_contributions": contributed_expenses,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_added(expense_id: str, details: str, cost: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense added: {details[:200]} - {cost}",
            details={"details": details, "cost": cost},
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(expense_id: str, old_cost: str, new_cost: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense replaced (cost {old_cost} -> {new_cost})",
            details={"old_cost": old_cost, "new_cost": new_cost},
            is_user_action=True,
        )

    @staticmethod
    def expense_removed(expense_id: str, details: str, cost: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REMOVED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense removed: {details[:200]} - {cost}",
            details={"details": details, "cost": cost},
            is_user_action=True,
        )

    @staticmethod
    def settings_updated(changed_keys: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            description=f"Settings updated: {', '.join(changed_keys) or 'no changes'}",
            details={"changed_keys": changed_keys},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=next(
                (kind for kind in ("expense", "settings") if kind in operation),
                "member",
            ),
            entity_id=entity_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={"operation": operation, "issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def storage_fallback(namespace: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="namespace",
            entity_id=namespace,
            description=f"Stored {namespace} unusable, loaded built-in defaults",
            error_message=reason,
            details={"namespace": namespace},
        )

    @staticmethod
    def external_reload(namespaces: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_RELOAD,
            entity_type="namespace",
            description=f"Reloaded after external change: {', '.join(namespaces)}",
            details={"namespaces": namespaces},
        )

    @staticmethod
    def save_failed(namespace: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="namespace",
            entity_id=namespace,
            description=f"Failed to persist {namespace}",
            error_message=error_message,
        )

    @staticmethod
    def settlement_computed(
        total_expense: str,
        member_count: int,
        transaction_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="settlement",
            description=(
                f"Settlement computed: {transaction_count} transactions "
                f"for {member_count} members"
            ),
            details={
                "total_expense": total_expense,
                "member_count": member_count,
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def consistency_violation(error_message: str, details: dict) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_VIOLATION,
            severity=AuditSeverity.CRITICAL,
            entity_type="settlement",
            description="Settlement halted: balances do not net to zero",
            error_message=error_message,
            details=details,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
