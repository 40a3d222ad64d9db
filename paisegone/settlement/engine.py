"""
Settlement Engine

Pure function of a ledger snapshot: no side effects, no hidden state.
Recomputed on every read, so there is nothing to invalidate.

Steps:
1. Keep the expenses whose date falls in the (inclusive) range
2. Total the cost of those expenses
3. Split the total equally over the CURRENT roster
4. paid - share per member gives the balance
5. Partition into receivers (most positive first) and payers
   (most negative first), ignoring balances within epsilon of zero
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Optional

from paisegone.errors import InternalConsistencyError
from paisegone.models.ledger import (
    CONTRIBUTION_TOLERANCE,
    SETTLEMENT_EPSILON,
    DateRange,
    Expense,
    LedgerSnapshot,
)
from paisegone.models.settlement import MemberBalance, SettlementSummary


ZERO = Decimal("0")


def filter_expenses(
    expenses: Iterable[Expense],
    date_range: Optional[DateRange] = None,
) -> list[Expense]:
    """Expenses inside the inclusive range, in their original order."""
    if date_range is None:
        return list(expenses)
    return [e for e in expenses if date_range.contains(e.date)]


def compute_summary(
    snapshot: LedgerSnapshot,
    date_range: Optional[DateRange] = None,
    epsilon: Optional[Decimal] = None,
    contribution_tolerance: Optional[Decimal] = None,
) -> SettlementSummary:
    """
    Compute totals, the equal share and per-member balances.

    Contributions from ids no longer on the roster still count toward
    the total; they are reported as ``unattributed_paid`` so that
    sum(balances) + unattributed_paid == 0.

    Each expense may carry a contribution gap of up to
    ``contribution_tolerance``, so the allowed drift grows with the
    number of expenses in scope (see SettlementSummary.consistency_bound).

    Raises:
        InternalConsistencyError: If the balances do not net to zero
    """
    epsilon = SETTLEMENT_EPSILON if epsilon is None else epsilon
    if contribution_tolerance is None:
        contribution_tolerance = CONTRIBUTION_TOLERANCE
    expenses = filter_expenses(snapshot.expenses, date_range)
    members = snapshot.members
    roster_ids = {m.id for m in members}

    total_expense = sum((e.cost for e in expenses), ZERO)
    share = total_expense / len(members) if members else ZERO

    paid = {m.id: ZERO for m in members}
    unattributed = ZERO
    for expense in expenses:
        for member_id, amount in expense.contributions.items():
            if member_id in roster_ids:
                paid[member_id] += amount
            else:
                unattributed += amount

    balances = tuple(
        MemberBalance(
            member_id=m.id,
            name=m.name,
            contact=m.contact,
            paid=paid[m.id],
            share=share,
            balance=paid[m.id] - share,
        )
        for m in members
    )

    # sorted() is stable with reverse=True, so ties keep roster order
    receivers = sorted(
        (b for b in balances if b.balance > epsilon),
        key=lambda b: b.balance,
        reverse=True,
    )
    payers = sorted(
        (b for b in balances if b.balance < -epsilon),
        key=lambda b: b.balance,
    )

    summary = SettlementSummary(
        date_range=date_range,
        expense_count=len(expenses),
        member_count=len(members),
        total_expense=total_expense,
        per_person_share=share,
        unattributed_paid=unattributed,
        epsilon=epsilon,
        contribution_tolerance=contribution_tolerance,
        balances=balances,
        receivers=tuple(receivers),
        payers=tuple(payers),
    )

    # With an empty roster every contribution is unattributed and must cover the total
    expected = ZERO if balances else total_expense
    drift = sum((b.balance for b in balances), ZERO) + unattributed - expected
    if abs(drift) > summary.consistency_bound:
        raise InternalConsistencyError(
            f"Balances do not net to zero (drift {drift})",
            details={
                "drift": str(drift),
                "allowed_drift": str(summary.consistency_bound),
                "total_expense": str(total_expense),
                "unattributed_paid": str(unattributed),
                "member_count": len(members),
                "expense_count": len(expenses),
            },
        )
    return summary
