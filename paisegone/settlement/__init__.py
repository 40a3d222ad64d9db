"""Settlement engine and debt-minimization planner."""

from paisegone.errors import InternalConsistencyError
from paisegone.settlement.engine import compute_summary, filter_expenses
from paisegone.settlement.planner import plan_transactions, settle

__all__ = [
    "compute_summary",
    "filter_expenses",
    "plan_transactions",
    "settle",
    "InternalConsistencyError",
]
