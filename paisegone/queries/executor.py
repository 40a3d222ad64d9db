"""
Expense Query Execution

DESIGN DECISION: Queries run against a LedgerSnapshot, never against the
store's live collections, so a listing and the totals shown next to it
always come from the same instant.

Ordering is newest first (date descending, later insertion first on the
same date). Storage order stays insertion order; only readers sort.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from paisegone.models.ledger import DateRange, Expense, LedgerSnapshot


class ExpenseQuery(BaseModel):
    """Dashboard filter: optional date range plus free-text search."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search_text: str = Field(
        default="",
        max_length=200,
        description="Matched case-insensitively against details and contributor names"
    )
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum rows returned; the total still covers every match"
    )

    @model_validator(mode='after')
    def validate_dates(self) -> 'ExpenseQuery':
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self

    @property
    def date_range(self) -> DateRange:
        return DateRange(start=self.date_from, end=self.date_to)

    @classmethod
    def current_month(cls, today: Optional[date] = None, search_text: str = "") -> 'ExpenseQuery':
        """Default dashboard view: the calendar month containing today."""
        month = DateRange.month_of(today or date.today())
        return cls(date_from=month.start, date_to=month.end, search_text=search_text)


class ExpenseRow(BaseModel):
    """One expense with contributor ids resolved to display names."""
    model_config = ConfigDict(frozen=True)

    expense_id: str
    date: date
    details: str
    cost: Decimal
    contributor_names: tuple[str, ...] = ()


class ExpenseQueryResult(BaseModel):
    """Rows plus the totals a dashboard shows above them."""
    model_config = ConfigDict(frozen=True)

    rows: tuple[ExpenseRow, ...] = ()
    match_count: int = 0
    total_cost: Decimal = Decimal("0")
    per_person_share: Decimal = Decimal("0")

    @property
    def data_found(self) -> bool:
        return self.match_count > 0


class ExpenseQueryExecutor:
    """
    Executes expense queries against a snapshot.

    GUARANTEES:
    - Only returns recorded expenses
    - Contributors that left the group show as "Unknown"
    - total_cost covers every match, even when rows are limited
    """

    def _to_row(self, snapshot: LedgerSnapshot, expense: Expense) -> ExpenseRow:
        return ExpenseRow(
            expense_id=expense.id,
            date=expense.date,
            details=expense.details,
            cost=expense.cost,
            contributor_names=tuple(
                snapshot.member_name(member_id) for member_id in expense.contributions
            ),
        )

    def _matches(self, row: ExpenseRow, needle: str) -> bool:
        if not needle:
            return True
        if needle in row.details.lower():
            return True
        return any(needle in name.lower() for name in row.contributor_names)

    def execute(self, snapshot: LedgerSnapshot, query: ExpenseQuery) -> ExpenseQueryResult:
        date_range = query.date_range
        needle = query.search_text.lower()

        rows = []
        for expense in snapshot.expenses_newest_first():
            if not date_range.contains(expense.date):
                continue
            row = self._to_row(snapshot, expense)
            if self._matches(row, needle):
                rows.append(row)

        total = sum((row.cost for row in rows), Decimal("0"))
        members = len(snapshot.members)

        return ExpenseQueryResult(
            rows=tuple(rows[:query.limit] if query.limit else rows),
            match_count=len(rows),
            total_cost=total,
            per_person_share=total / members if members else Decimal("0"),
        )
