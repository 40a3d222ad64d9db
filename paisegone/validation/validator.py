"""
Two-Stage Validation Pipeline

DESIGN DECISION: Every write to the ledger passes through two stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking and coercion (pydantic)
- Required fields present, non-empty names and details
- Cost greater than zero, no negative contributions
- Zero contributions dropped

STAGE 2 - LEDGER VALIDATION:
- Contributions must add up to the cost (within tolerance)
- Every contributor must be a current or former member
- Dates far in the future are flagged as warnings

WHY TWO STAGES:
1. Stage 2 needs a well-formed record to reason about
2. Stage 2 needs ledger context (which member ids exist)
3. Better error messages (know exactly which rule was broken)

IMPORTANT: Validation NEVER silently fixes amounts.
A mismatched expense is rejected, not rescaled.
"""

from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from paisegone.config import get_settings
from paisegone.errors import ValidationError
from paisegone.models.ledger import ExpenseDraft, GroupSettings, Member
from paisegone.models.validation import ValidationIssue, ValidationResult


ExpenseInput = Union[ExpenseDraft, Mapping[str, Any]]

FUTURE_DATE_TOLERANCE_DAYS = 1


def _issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    issues = []
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"]) or "record"
        issues.append(ValidationIssue(
            field=field,
            issue_type=err["type"],
            message=f"{field}: {err['msg']}",
            severity="error",
        ))
    return issues


class LedgerValidator:
    """
    Validates members and expenses before they reach the store.

    Stage 1 runs without ledger context.
    Stage 2 needs the set of member ids a contribution may reference.
    """

    def __init__(self, tolerance: Optional[Decimal] = None):
        """
        Initialize validator.

        Args:
            tolerance: Allowed gap between sum of contributions and cost.
                      Defaults to the configured contribution tolerance.
        """
        if tolerance is None:
            tolerance = get_settings().app.contribution_tolerance
        self._tolerance = tolerance

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    def build_member(
        self,
        member_id: str,
        name: str,
        contact: Optional[str] = None,
    ) -> Member:
        """Build a Member or raise ValidationError listing what is wrong."""
        try:
            return Member(id=member_id, name=name, contact=contact)
        except PydanticValidationError as e:
            issues = _issues_from_pydantic(e)
            for issue in issues:
                if issue.field == "name":
                    issue.message = "Member name cannot be empty"
                    issue.suggested_fix = "Enter a display name for the member"
            raise ValidationError("Invalid member", issues) from e

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def build_settings(
        self,
        current: GroupSettings,
        changes: Mapping[str, Any],
    ) -> GroupSettings:
        """Merge changes into the settings blob or raise ValidationError."""
        merged = {**current.model_dump(), **changes}
        try:
            return GroupSettings.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError("Invalid settings", _issues_from_pydantic(e)) from e

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def _validate_schema(
        self,
        record: ExpenseInput,
    ) -> tuple[Optional[ExpenseDraft], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (draft or None, list_of_issues)
        """
        if isinstance(record, ExpenseDraft):
            record = record.model_dump()
        try:
            draft = ExpenseDraft.model_validate(dict(record))
        except PydanticValidationError as e:
            return None, _issues_from_pydantic(e)
        return draft, []

    def _validate_semantic(
        self,
        draft: ExpenseDraft,
        known_member_ids: Iterable[str],
    ) -> list[ValidationIssue]:
        """
        Stage 2: Ledger validation.

        Checks:
        - Somebody paid
        - Contributions add up to the cost
        - Contributors are known member ids
        - Date is not far in the future (warning only)
        """
        issues = []
        known = set(known_member_ids)

        if not draft.contributions:
            issues.append(ValidationIssue(
                field="contributions",
                issue_type="no_contributors",
                message="At least one member must have paid toward this expense",
                severity="error",
                suggested_fix="Select the member or members who paid",
            ))
        else:
            contributed = draft.contributed_total
            if abs(contributed - draft.cost) > self._tolerance:
                issues.append(ValidationIssue(
                    field="contributions",
                    issue_type="contributions_mismatch",
                    message=(
                        f"Contributions add up to {contributed} "
                        f"but the cost is {draft.cost}"
                    ),
                    severity="error",
                    suggested_fix="Adjust the paid amounts so they match the total cost",
                ))

        unknown = sorted(set(draft.contributions) - known)
        if unknown:
            issues.append(ValidationIssue(
                field="contributions",
                issue_type="unknown_contributor",
                message=f"Unknown member ids in contributions: {', '.join(unknown)}",
                severity="error",
                suggested_fix="Only members of the group can be recorded as payers",
            ))

        latest_reasonable = date.today() + timedelta(days=FUTURE_DATE_TOLERANCE_DAYS)
        if draft.date > latest_reasonable:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({draft.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        return issues

    def validate_expense(
        self,
        record: ExpenseInput,
        known_member_ids: Iterable[str],
        operation: str = "add_expense",
    ) -> tuple[Optional[ExpenseDraft], ValidationResult]:
        """
        Run the full two-stage pipeline.

        Args:
            record: ExpenseDraft or a mapping with date, details, cost, contributions
            known_member_ids: Ids a contribution may reference
            operation: Label recorded on the result

        Returns:
            (draft if schema-valid else None, ValidationResult)
        """
        all_issues = []

        draft, schema_issues = self._validate_schema(record)
        all_issues.extend(schema_issues)
        schema_valid = draft is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if draft is not None:
            semantic_issues = self._validate_semantic(draft, known_member_ids)
            all_issues.extend(semantic_issues)
            semantic_valid = not any(i.severity == "error" for i in semantic_issues)

        result = ValidationResult(
            operation=operation,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )
        return draft, result

    def check_expense(
        self,
        record: ExpenseInput,
        known_member_ids: Iterable[str],
        operation: str = "add_expense",
    ) -> ExpenseDraft:
        """Like validate_expense, but raises ValidationError on failure."""
        draft, result = self.validate_expense(record, known_member_ids, operation)
        if not result.is_valid:
            raise ValidationError(
                "; ".join(issue.message for issue in result.errors),
                result.issues,
            )
        return draft

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ This expense cannot be saved:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
