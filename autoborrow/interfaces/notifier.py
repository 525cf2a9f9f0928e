"""Notifier protocols — decision sink and notification channel abstractions."""
from decimal import Decimal
from typing import Protocol, Sequence

from ..models import Decision


class NotificationChannel(Protocol):
    """A transport that delivers formatted messages (Telegram, e-mail, ...)."""

    async def send_alert(self, message: str, subject: str = "") -> bool: ...

    async def send_log(self, message: str, silent: bool = True) -> bool: ...


class Notifier(Protocol):
    """Receives borrow/repay decisions and pass summaries.

    Both calls must return without waiting on delivery.
    """

    def notify(self, decision: Decision) -> None: ...

    def notify_pass(
        self,
        margin_level: Decimal,
        min_margin_level: Decimal,
        decisions: Sequence[Decision],
        skipped: bool = False,
    ) -> None: ...
