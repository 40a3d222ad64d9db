"""
Settlement Models

Derived, never persisted. Everything here is recomputed from a
LedgerSnapshot on every read.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from paisegone.models.ledger import CONTRIBUTION_TOLERANCE, SETTLEMENT_EPSILON, DateRange


class BalanceStatus(str, Enum):
    """Where a member stands after the equal split."""
    RECEIVABLE = "receivable"  # Paid more than their share
    PAYABLE = "payable"        # Paid less than their share
    SETTLED = "settled"        # Within epsilon of zero


class MemberBalance(BaseModel):
    """One member's position for the settlement period."""
    model_config = ConfigDict(frozen=True)

    member_id: str
    name: str
    contact: Optional[str] = None
    paid: Decimal = Field(
        ...,
        description="Sum of this member's contributions in scope"
    )
    share: Decimal = Field(
        ...,
        description="Equal split of the period total"
    )
    balance: Decimal = Field(
        ...,
        description="paid - share; positive means the group owes this member"
    )

    def status(self, epsilon: Decimal = SETTLEMENT_EPSILON) -> BalanceStatus:
        if self.balance > epsilon:
            return BalanceStatus.RECEIVABLE
        if self.balance < -epsilon:
            return BalanceStatus.PAYABLE
        return BalanceStatus.SETTLED


class SettlementSummary(BaseModel):
    """
    Output of the settlement engine.

    ``balances`` keeps the roster order. ``receivers`` and ``payers``
    are the sorted partitions the transaction planner consumes.
    """
    model_config = ConfigDict(frozen=True)

    date_range: Optional[DateRange] = None
    expense_count: int = Field(ge=0)
    member_count: int = Field(ge=0)
    total_expense: Decimal
    per_person_share: Decimal
    unattributed_paid: Decimal = Field(
        default=Decimal("0"),
        description="Contributions from members no longer on the roster"
    )
    epsilon: Decimal = SETTLEMENT_EPSILON
    contribution_tolerance: Decimal = Field(
        default=CONTRIBUTION_TOLERANCE,
        description="Per-expense gap allowed between contributions and cost"
    )

    balances: tuple[MemberBalance, ...] = ()
    receivers: tuple[MemberBalance, ...] = ()  # Most positive first
    payers: tuple[MemberBalance, ...] = ()     # Most negative first

    @property
    def consistency_bound(self) -> Decimal:
        """
        Largest drift from zero-sum that valid data can produce.

        Rounding headroom per balance, plus the contribution gap each
        expense in scope was allowed to carry.
        """
        return (
            self.epsilon * max(1, self.member_count)
            + self.contribution_tolerance * self.expense_count
        )

    def balance_for(self, member_id: str) -> Optional[MemberBalance]:
        for balance in self.balances:
            if balance.member_id == member_id:
                return balance
        return None


class SettlementTransaction(BaseModel):
    """A directive that one member pays another."""
    model_config = ConfigDict(frozen=True)

    from_member_id: str
    from_name: str
    to_member_id: str
    to_name: str
    amount: Decimal = Field(gt=0)


class SettlementPlan(BaseModel):
    """Summary plus the ordered transactions that settle it."""
    model_config = ConfigDict(frozen=True)

    summary: SettlementSummary
    transactions: tuple[SettlementTransaction, ...] = ()
    unsettled_amount: Decimal = Field(
        default=Decimal("0"),
        description="Debt owed toward removed members, which no transaction can route"
    )
    computed_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)
