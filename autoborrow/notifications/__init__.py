"""Notification modules."""
from .alerts import (
    DecisionNotifier,
    build_channels,
    decision_fields,
    format_decision,
    format_pass_summary,
)
from .email import EmailNotifier
from .telegram import TelegramNotifier

__all__ = [
    "DecisionNotifier",
    "EmailNotifier",
    "TelegramNotifier",
    "build_channels",
    "decision_fields",
    "format_decision",
    "format_pass_summary",
]
