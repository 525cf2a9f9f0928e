"""Protocol interfaces for the margin auto-borrow controller."""
from .account import AccountSnapshotProvider
from .balance_stream import BalanceChangeHandler, BalanceUpdateSource
from .margin import MarginBorrowRepay, ensure_margin_capability
from .notifier import NotificationChannel, Notifier

__all__ = [
    "AccountSnapshotProvider",
    "BalanceChangeHandler",
    "BalanceUpdateSource",
    "MarginBorrowRepay",
    "NotificationChannel",
    "Notifier",
    "ensure_margin_capability",
]
