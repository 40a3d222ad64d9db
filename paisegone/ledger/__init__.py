"""Ledger store: the single owner of members, expenses and settings."""

from paisegone.ledger.seed import seed_expenses, seed_members
from paisegone.ledger.store import NAMESPACES, LedgerStore

__all__ = [
    "LedgerStore",
    "NAMESPACES",
    "seed_members",
    "seed_expenses",
]
