"""Settlement notice text and chat links."""

from paisegone.notifications.message import (
    MissingContactError,
    NotificationError,
    SettlementNoticeFormatter,
    build_chat_link,
)

__all__ = [
    "MissingContactError",
    "NotificationError",
    "SettlementNoticeFormatter",
    "build_chat_link",
]
