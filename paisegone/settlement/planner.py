"""
Debt-Minimization Planner

Greedy two-pointer matching over the sorted partitions produced by the
settlement engine: the most-negative payer pays the most-positive
receiver as much as either side allows, then whichever side is used up
moves on. At most len(payers) + len(receivers) - 1 transactions.

The tie-break order (payer most negative first, receiver most positive
first, roster order on ties) is part of the contract: the same snapshot
always yields the same transaction list.
"""

from decimal import Decimal
from typing import Optional

from paisegone.errors import InternalConsistencyError
from paisegone.models.ledger import DateRange, LedgerSnapshot
from paisegone.models.settlement import (
    SettlementPlan,
    SettlementSummary,
    SettlementTransaction,
)
from paisegone.settlement.engine import ZERO, compute_summary


def _match(summary: SettlementSummary) -> tuple[list[SettlementTransaction], Decimal, Decimal]:
    """Run the greedy match. Returns (transactions, payer debt left, receiver credit left)."""
    eps = summary.epsilon
    # Working copies; the summary itself is never touched
    payers = [[b, -b.balance] for b in summary.payers]
    receivers = [[b, b.balance] for b in summary.receivers]

    transactions = []
    i = j = 0
    while i < len(payers) and j < len(receivers):
        payer, owes = payers[i]
        receiver, due = receivers[j]

        amount = min(owes, due)
        if amount > eps:
            transactions.append(SettlementTransaction(
                from_member_id=payer.member_id,
                from_name=payer.name,
                to_member_id=receiver.member_id,
                to_name=receiver.name,
                amount=amount,
            ))

        payers[i][1] = owes - amount
        receivers[j][1] = due - amount
        if payers[i][1] <= eps:
            i += 1
        if receivers[j][1] <= eps:
            j += 1

    payer_left = sum((p[1] for p in payers[i:]), ZERO)
    receiver_left = sum((r[1] for r in receivers[j:]), ZERO)
    return transactions, payer_left, receiver_left


def plan_transactions(summary: SettlementSummary) -> tuple[list[SettlementTransaction], Decimal]:
    """
    Turn a summary into an ordered list of payments.

    Both partitions must run out together. The one exception is debt
    owed toward removed members (``summary.unattributed_paid``): nobody
    on the roster can receive it, so it is left over on the payer side
    and returned as the unsettled amount.

    Returns:
        (transactions, unsettled_amount)

    Raises:
        InternalConsistencyError: If anything else is left over
    """
    transactions, payer_left, receiver_left = _match(summary)

    # With an empty roster there is nobody left to owe the unattributed amount
    expected_left = summary.unattributed_paid if summary.member_count else ZERO
    bound = summary.consistency_bound
    if receiver_left > bound or abs(payer_left - expected_left) > bound:
        raise InternalConsistencyError(
            "Settlement did not clear every balance",
            details={
                "payer_left": str(payer_left),
                "receiver_left": str(receiver_left),
                "unattributed_paid": str(summary.unattributed_paid),
                "allowed_drift": str(bound),
                "transactions": len(transactions),
            },
        )

    # Contribution gaps are not debt; only money owed toward removed members is
    unsettled = min(payer_left, expected_left)
    if unsettled <= summary.epsilon:
        unsettled = ZERO
    return transactions, unsettled


def settle(
    snapshot: LedgerSnapshot,
    date_range: Optional[DateRange] = None,
    epsilon: Optional[Decimal] = None,
    contribution_tolerance: Optional[Decimal] = None,
) -> SettlementPlan:
    """Summary and payment plan for one snapshot."""
    summary = compute_summary(snapshot, date_range, epsilon, contribution_tolerance)
    transactions, unsettled = plan_transactions(summary)
    return SettlementPlan(
        summary=summary,
        transactions=tuple(transactions),
        unsettled_amount=unsettled,
    )
