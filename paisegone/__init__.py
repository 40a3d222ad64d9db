"""
PaiseGone - Shared Expense Ledger

Tracks shared household/mess expenses and works out who owes whom,
using as few settling payments as practical.

DESIGN PRINCIPLES:
1. Validate at the write boundary, never store a broken expense
2. Settlement is recomputed from raw contributions on every read
3. Fail loudly on inconsistency, never emit a plausible but wrong plan
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "2.2.0"
__author__ = "PaiseGone Team"
