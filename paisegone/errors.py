"""
Error taxonomy for the ledger core.

ValidationError and NotFoundError are recoverable: the write was
rejected, nothing changed, and the caller can correct input and retry.
InternalConsistencyError is a defect signal and is not user-recoverable.
"""

from typing import Optional

from paisegone.models.validation import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """Malformed input; the store is unchanged."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = list(issues or [])

    @property
    def issue_types(self) -> list[str]:
        return [issue.issue_type for issue in self.issues]


class NotFoundError(LedgerError):
    """Operation referenced an unknown id."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InternalConsistencyError(LedgerError):
    """
    Balances failed to net to zero during settlement.

    Unreachable while the store validates every write; raised instead
    of emitting a plausible-looking but wrong payment plan.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = dict(details or {})
