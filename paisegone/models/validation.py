"""
Validation Models

Issues and results produced by paisegone.validation. They travel inside
ValidationError so callers can show exactly which rule a write broke.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'contributions_mismatch', 'unknown_contributor')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields, value ranges)
    Stage 2: Ledger validation (contributions vs cost, known contributors)
    """

    operation: str = Field(
        ...,
        description="What was being validated (e.g., 'add_expense')"
    )
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)

    # Warnings don't block but should be shown
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]
