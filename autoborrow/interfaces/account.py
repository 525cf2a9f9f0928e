"""Account snapshot provider protocol — margin account state abstraction."""
from typing import Protocol

from ..models import AccountSnapshot


class AccountSnapshotProvider(Protocol):
    """Supplies the current margin account snapshot and refreshes it on demand."""

    async def refresh(self) -> None: ...

    def current_snapshot(self) -> AccountSnapshot: ...
