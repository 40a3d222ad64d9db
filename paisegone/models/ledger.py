"""
Core Ledger Models for PaiseGone

These models define the strict schemas for members, expenses and the
group settings blob. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be immutable once built, so a snapshot can be shared safely

DESIGN DECISION: Money is Decimal end to end. Floats only appear at the
edges (user input), and pydantic converts them on the way in.

Cross-record rules (contributions adding up to the cost, contributors
being known members) need ledger context and live in
paisegone.validation instead of here.
"""

import calendar
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# Sum of contributions must match the cost within a tenth of a minor unit
CONTRIBUTION_TOLERANCE = Decimal("0.001")

# Balances closer than this to zero are treated as settled
SETTLEMENT_EPSILON = Decimal("0.01")

UNKNOWN_MEMBER_NAME = "Unknown"


# =============================================================================
# MEMBERS
# =============================================================================

class Member(BaseModel):
    """
    A member of the group.

    The id is assigned by the ledger store and never changes.
    Contact is only used by the notification collaborator.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque member identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    contact: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Phone number or chat address"
    )

    @field_validator('contact')
    @classmethod
    def blank_contact_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    Everything about an expense except its identity.

    This is what callers submit to add an expense, and the full
    replacement record when editing one.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    date: dt.date = Field(
        ...,
        description="Calendar date of the expense"
    )
    details: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="What was bought"
    )
    cost: Decimal = Field(
        ...,
        gt=0,
        description="Total amount of the expense"
    )
    contributions: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Member id -> amount that member paid toward this expense"
    )

    @field_validator('contributions')
    @classmethod
    def drop_empty_contributions(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Zero amounts mean 'did not pay' and are not stored."""
        cleaned = {}
        for member_id, amount in v.items():
            key = member_id.strip()
            if not key:
                raise ValueError("Contribution member id cannot be empty")
            if amount < 0:
                raise ValueError(f"Contribution for {key} cannot be negative")
            if amount == 0:
                continue
            cleaned[key] = cleaned.get(key, Decimal("0")) + amount
        return cleaned

    @property
    def contributed_total(self) -> Decimal:
        return sum(self.contributions.values(), Decimal("0"))


class Expense(ExpenseDraft):
    """A stored expense. Edits replace the whole record."""

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque expense identifier"
    )

    def to_draft(self) -> ExpenseDraft:
        return ExpenseDraft(
            date=self.date,
            details=self.details,
            cost=self.cost,
            contributions=dict(self.contributions),
        )


# =============================================================================
# GROUP SETTINGS
# =============================================================================

class GroupSettings(BaseModel):
    """
    Free-form settings blob shared by the group.

    Unknown keys are kept as-is so other clients can store their own
    preferences alongside ours.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="allow")

    currency_symbol: str = Field(
        default="₹",
        min_length=1,
        max_length=5,
        description="Symbol shown before amounts"
    )
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used for period labels"
    )
    theme: Literal["light", "dark"] = Field(
        default="light",
        description="Preferred UI theme"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


# =============================================================================
# FILTERS AND SNAPSHOTS
# =============================================================================

class DateRange(BaseModel):
    """Inclusive date range. Either end may be left open."""
    model_config = ConfigDict(frozen=True)

    start: Optional[dt.date] = None
    end: Optional[dt.date] = None

    @model_validator(mode='after')
    def validate_order(self) -> 'DateRange':
        if self.start and self.end and self.end < self.start:
            raise ValueError("Date range end cannot be before start")
        return self

    def contains(self, day: dt.date) -> bool:
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True

    @classmethod
    def month_of(cls, day: dt.date) -> 'DateRange':
        """The calendar month containing ``day``."""
        last_day = calendar.monthrange(day.year, day.month)[1]
        return cls(start=day.replace(day=1), end=day.replace(day=last_day))


class LedgerSnapshot(BaseModel):
    """
    Point-in-time copy of the ledger.

    Settlement must be computed from a single snapshot so the member
    roster and the expense list always come from the same instant.
    """
    model_config = ConfigDict(frozen=True)

    members: tuple[Member, ...] = ()
    expenses: tuple[Expense, ...] = ()
    settings: GroupSettings = Field(default_factory=GroupSettings)
    taken_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)

    def member_by_id(self) -> dict[str, Member]:
        return {m.id: m for m in self.members}

    def member_name(self, member_id: str) -> str:
        """Display name for a contributor; removed members show as Unknown."""
        member = self.member_by_id().get(member_id)
        return member.name if member else UNKNOWN_MEMBER_NAME

    def expenses_newest_first(self) -> list[Expense]:
        """Reader order: latest date first, later insertion first on ties."""
        ordered = sorted(
            enumerate(self.expenses),
            key=lambda pair: (pair[1].date, pair[0]),
            reverse=True,
        )
        return [expense for _, expense in ordered]


# =============================================================================
# CHANGE NOTIFICATIONS
# =============================================================================

class ChangeKind(str, Enum):
    """What happened to the ledger."""
    MEMBER_ADDED = "member_added"
    MEMBER_RENAMED = "member_renamed"
    MEMBER_CONTACT_UPDATED = "member_contact_updated"
    MEMBER_REMOVED = "member_removed"
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_REMOVED = "expense_removed"
    SETTINGS_UPDATED = "settings_updated"
    EXTERNAL_RELOAD = "external_reload"  # Another process changed storage


class LedgerChange(BaseModel):
    """Payload delivered to store subscribers after every change."""
    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    entity_id: Optional[str] = Field(
        default=None,
        description="Member or expense id, when the change is about one"
    )
    namespaces: tuple[str, ...] = Field(
        default=(),
        description="Storage namespaces affected"
    )
    occurred_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)
