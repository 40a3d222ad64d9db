"""
Audit Logger

DESIGN DECISION: Every change to the shared ledger is logged.
This provides:
1. Traceability when several people edit the same ledger
2. Debugging capability when a balance looks wrong
3. A visible record of storage fallbacks and external reloads

The audit logger:
- Gracefully handles failures (doesn't break a ledger write if logging fails)
- Logs locally through structlog, and optionally persists events
"""

from typing import Optional

import structlog

from paisegone.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from paisegone.models.ledger import Expense, Member
from paisegone.models.validation import ValidationIssue
from paisegone.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("paisegone.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_member_added(self, member: Member) -> None:
        self.log(AuditEventBuilder.member_added(member.id, member.name))

    def log_member_renamed(self, member_id: str, old_name: str, new_name: str) -> None:
        self.log(AuditEventBuilder.member_renamed(member_id, old_name, new_name))

    def log_member_contact_updated(self, member: Member) -> None:
        self.log(AuditEventBuilder.member_contact_updated(member.id, member.contact is not None))

    def log_member_removed(self, member: Member, contributed_expenses: int) -> None:
        self.log(AuditEventBuilder.member_removed(member.id, member.name, contributed_expenses))

    def log_expense_added(self, expense: Expense) -> None:
        self.log(AuditEventBuilder.expense_added(expense.id, expense.details, str(expense.cost)))

    def log_expense_updated(self, old: Expense, new: Expense) -> None:
        self.log(AuditEventBuilder.expense_updated(new.id, str(old.cost), str(new.cost)))

    def log_expense_removed(self, expense: Expense) -> None:
        self.log(AuditEventBuilder.expense_removed(expense.id, expense.details, str(expense.cost)))

    def log_settings_updated(self, changed_keys: list[str]) -> None:
        self.log(AuditEventBuilder.settings_updated(changed_keys))

    def log_validation_failed(
        self,
        operation: str,
        issues: list[ValidationIssue],
        entity_id: Optional[str] = None,
    ) -> None:
        """Log a rejected write."""
        self.log(AuditEventBuilder.validation_failed(
            operation=operation,
            issues=[
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in issues
            ],
            entity_id=entity_id,
        ))

    def log_storage_fallback(self, namespace: str, reason: str) -> None:
        self.log(AuditEventBuilder.storage_fallback(namespace, reason))

    def log_external_reload(self, namespaces: list[str]) -> None:
        self.log(AuditEventBuilder.external_reload(namespaces))

    def log_save_failed(self, namespace: str, error_message: str) -> None:
        self.log(AuditEventBuilder.save_failed(namespace, error_message))

    def log_settlement_computed(
        self,
        total_expense: str,
        member_count: int,
        transaction_count: int,
    ) -> None:
        self.log(AuditEventBuilder.settlement_computed(
            total_expense, member_count, transaction_count
        ))

    def log_consistency_violation(self, error_message: str, details: dict) -> None:
        self.log(AuditEventBuilder.consistency_violation(error_message, details))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(error_type, error_message, details))
