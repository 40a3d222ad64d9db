"""Expense query execution."""

from paisegone.queries.executor import (
    ExpenseQuery,
    ExpenseQueryExecutor,
    ExpenseQueryResult,
    ExpenseRow,
)

__all__ = [
    "ExpenseQuery",
    "ExpenseQueryExecutor",
    "ExpenseQueryResult",
    "ExpenseRow",
]
