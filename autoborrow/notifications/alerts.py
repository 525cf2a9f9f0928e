"""Decision alerts — formatting and fan-out to notification channels."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Coroutine, Sequence

from ..config import NotificationsConfig
from ..interfaces.notifier import NotificationChannel
from ..models import Decision, MarginAction
from .email import EmailNotifier
from .telegram import TelegramNotifier

logger = logging.getLogger(__name__)

_ICONS = {MarginAction.BORROW: "🏦", MarginAction.REPAY: "💸"}


def decision_fields(decision: Decision) -> list[tuple[str, str]]:
    """Ordered (title, value) pairs describing a decision."""
    return [
        ("Action", decision.action.value),
        ("Asset", decision.asset),
        ("Amount", str(decision.amount)),
        ("Current Margin Level", str(decision.margin_level)),
        ("Min Margin Level", str(decision.min_margin_level)),
    ]


def format_decision(decision: Decision) -> tuple[str, str]:
    """Return ``(subject, message)`` for a decision alert."""
    title = f"{decision.action.value} {decision.amount} {decision.asset}"
    icon = _ICONS.get(decision.action, "⚠️")
    lines = [f"{icon} {title}", ""]
    lines.extend(f"{name}: {value}" for name, value in decision_fields(decision))
    lines.extend(["", f"{datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} UTC"])
    subject = f"⚠️ Margin {title}"
    return subject, "\n".join(lines)


def format_pass_summary(
    margin_level: Decimal,
    min_margin_level: Decimal,
    decisions: Sequence[Decision],
    skipped: bool = False,
) -> str:
    """Log message for one borrow evaluation pass."""
    lines = [
        "📊 Auto borrow pass",
        "",
        f"Current Margin Level: {margin_level}",
        f"Min Margin Level: {min_margin_level}",
    ]
    if skipped:
        lines.append("Status: margin level below minimum, borrow skipped")
    elif decisions:
        lines.append("Borrow requests:")
        lines.extend(f"  {d.amount} {d.asset}" for d in decisions)
    else:
        lines.append("Status: no borrow needed")
    lines.extend(["", f"{datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} UTC"])
    return "\n".join(lines)


def build_channels(config: NotificationsConfig) -> list[NotificationChannel]:
    """Instantiate the enabled notification channels."""
    channels: list[NotificationChannel] = []
    if config.telegram.enabled:
        channels.append(TelegramNotifier(config.telegram))
    if config.email.enabled:
        channels.append(EmailNotifier(config.email))
    return channels


class DecisionNotifier:
    """Sends decisions and pass summaries to all channels without blocking the caller.

    Decisions go out as alerts; pass summaries go to the quiet log channel.
    """

    def __init__(self, channels: Sequence[NotificationChannel]) -> None:
        self._channels = list(channels)
        self._pending: set[asyncio.Task[None]] = set()

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def notify(self, decision: Decision) -> None:
        if not self._channels:
            return
        subject, message = format_decision(decision)
        for channel in self._channels:
            self._schedule(self._send(channel, message, subject))

    def notify_pass(
        self,
        margin_level: Decimal,
        min_margin_level: Decimal,
        decisions: Sequence[Decision],
        skipped: bool = False,
    ) -> None:
        if not self._channels:
            return
        message = format_pass_summary(margin_level, min_margin_level, decisions, skipped)
        for channel in self._channels:
            self._schedule(self._send_log(channel, message))

    async def _send(
        self, channel: NotificationChannel, message: str, subject: str
    ) -> None:
        try:
            await channel.send_alert(message, subject=subject)
        except Exception as e:
            logger.error("Notifier send_alert failed: %s", e)

    async def _send_log(self, channel: NotificationChannel, message: str) -> None:
        try:
            await channel.send_log(message, silent=True)
        except Exception as e:
            logger.error("Notifier send_log failed: %s", e)

    async def wait_pending(self) -> None:
        """Wait for queued messages to be delivered (or fail)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
