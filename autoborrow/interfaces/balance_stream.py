"""Balance update source protocol — normalized balance change events."""
from typing import Awaitable, Callable, Protocol, Union

from ..models import BalanceChange

BalanceChangeHandler = Callable[[BalanceChange], Union[Awaitable[object], object]]


class BalanceUpdateSource(Protocol):
    """Delivers ``BalanceChange`` events to registered handlers."""

    def on_balance_change(self, handler: BalanceChangeHandler) -> None: ...
