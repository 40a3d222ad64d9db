"""
Built-in seed dataset.

Loaded when a namespace is missing from storage or cannot be decoded,
so a fresh install (or a damaged one) still starts with something to look at.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from paisegone.models.ledger import Expense, Member


def seed_members() -> list[Member]:
    """Five placeholder members with ids '1' to '5'."""
    return [Member(id=str(n), name=f"Member {n}") for n in range(1, 6)]


def seed_expenses(today: Optional[date] = None) -> list[Expense]:
    """Two sample expenses on the 1st and 2nd of the current month."""
    today = today or date.today()
    return [
        Expense(
            id="1",
            date=today.replace(day=1),
            details="Rice, Oil, Onion",
            cost=Decimal("1500"),
            contributions={"1": Decimal("1500")},
        ),
        Expense(
            id="2",
            date=today.replace(day=2),
            details="Chicken, Potato",
            cost=Decimal("800"),
            contributions={"2": Decimal("400"), "3": Decimal("400")},
        ),
    ]
