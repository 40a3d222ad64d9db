"""
Settlement Notice Formatting

Turns one member's balance into the chat message the group manager
sends at the end of the month, plus a click-to-chat link carrying it.

Only text is produced here. Opening the link or delivering the message
is the caller's business.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

from paisegone.config import get_settings
from paisegone.models.ledger import GroupSettings
from paisegone.models.settlement import BalanceStatus, MemberBalance, SettlementSummary


CHAT_LINK_BASE = "https://wa.me"
RULE = "----------------------------"

STATUS_LABELS = {
    BalanceStatus.RECEIVABLE: "Receivable (Extra Paid)",
    BalanceStatus.PAYABLE: "Payable (Due Amount)",
    BalanceStatus.SETTLED: "Settled (Nothing Due)",
}

CLOSING_LINES = {
    BalanceStatus.RECEIVABLE: (
        "_Thank you for your extra contribution! "
        "You will receive this amount during settlement._"
    ),
    BalanceStatus.PAYABLE: (
        "_Please settle your dues at your earliest convenience "
        "to maintain the mess flow._"
    ),
    BalanceStatus.SETTLED: "_You are all square for this period._",
}


class NotificationError(Exception):
    """Base exception for notification formatting."""
    pass


class MissingContactError(NotificationError):
    """Member has no usable phone number."""

    def __init__(self, member_name: Optional[str] = None):
        who = f" for {member_name}" if member_name else ""
        super().__init__(
            f"No contact number{who}. Add one to the member before sending a notice."
        )
        self.member_name = member_name


def build_chat_link(contact: Optional[str], message: str, member_name: Optional[str] = None) -> str:
    """
    Click-to-chat URL with the message pre-filled.

    Everything but digits is stripped from the contact.

    Raises:
        MissingContactError: If no digits remain
    """
    digits = re.sub(r"[^0-9]", "", contact or "")
    if not digits:
        raise MissingContactError(member_name)
    return f"{CHAT_LINK_BASE}/{digits}?text={quote(message, safe='')}"


class SettlementNoticeFormatter:
    """Renders settlement notices in the group's currency and timezone."""

    def __init__(
        self,
        currency_symbol: str = "₹",
        timezone: str = "UTC",
        app_signature: Optional[str] = None,
    ):
        self._currency = currency_symbol
        self._timezone = ZoneInfo(timezone)
        self._signature = app_signature or get_settings().app.app_signature

    @classmethod
    def from_group_settings(
        cls,
        settings: GroupSettings,
        app_signature: Optional[str] = None,
    ) -> 'SettlementNoticeFormatter':
        return cls(settings.currency_symbol, settings.timezone, app_signature)

    def money(self, amount: Decimal) -> str:
        return f"{self._currency}{amount:,.2f}"

    def today(self) -> date:
        return datetime.now(self._timezone).date()

    def period_label(self, summary: SettlementSummary, today: Optional[date] = None) -> str:
        """'OCTOBER, 2026' for the month the period starts in (or the current month)."""
        anchor = None
        if summary.date_range is not None:
            anchor = summary.date_range.start or summary.date_range.end
        anchor = anchor or today or self.today()
        return anchor.strftime("%B, %Y").upper()

    def render_notice(
        self,
        balance: MemberBalance,
        summary: SettlementSummary,
        today: Optional[date] = None,
    ) -> str:
        """Full notice text for one member."""
        status = balance.status(summary.epsilon)

        lines = [
            f"*📊 MESS SETTLEMENT NOTICE — {self.period_label(summary, today)}*",
            "",
            f"Hello Brother *{balance.name}*,",
            "Here is your summary for the current month:",
            "",
            f"• Total Mess Expense: {self.money(summary.total_expense)}",
            f"• Per Person Share: {self.money(summary.per_person_share)}",
            f"• You have Paid: {self.money(balance.paid)}",
            RULE,
            f"*STATUS: {STATUS_LABELS[status]}*",
            f"*AMOUNT: {self.money(abs(balance.balance))}*",
            RULE,
            "",
            CLOSING_LINES[status],
            "",
            "Best Regards,",
            f"*{self._signature}*",
        ]
        return "\n".join(lines)

    def chat_link(
        self,
        balance: MemberBalance,
        summary: SettlementSummary,
        today: Optional[date] = None,
    ) -> str:
        """
        Raises:
            MissingContactError: If the member has no contact number
        """
        return build_chat_link(
            balance.contact,
            self.render_notice(balance, summary, today),
            member_name=balance.name,
        )
