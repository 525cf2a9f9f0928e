"""Wires the exchange, notifiers and auto borrow strategy together."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Any, Callable

from ..config import AppConfig, ExchangeConfig
from ..exchanges import (
    BinanceMarginClient,
    BinanceUserDataStream,
    DryRunMarginExecutor,
    MarginAccountSession,
)
from ..models import AccountSnapshot, Decision
from ..notifications import DecisionNotifier, build_channels
from ..strategy import autoborrow
from ..strategy.registry import StrategyRegistry, build_registry

logger = logging.getLogger(__name__)

# Exchange client factories keyed by exchange name.
_EXCHANGE_FACTORIES: dict[str, Callable[[ExchangeConfig], Any]] = {
    "binance": BinanceMarginClient,
}


class Controller:
    """Builds the collaborators for one exchange session and runs the strategy."""

    def __init__(
        self,
        config: AppConfig,
        registry: StrategyRegistry | None = None,
        dry_run: bool = False,
    ) -> None:
        self._config = config
        self._registry = registry or build_registry()

        factory = _EXCHANGE_FACTORIES[config.exchange.name]
        self._client = factory(config.exchange)
        self._session = MarginAccountSession(self._client)
        self._stream = BinanceUserDataStream(self._client, config.exchange, self._session)

        executor = DryRunMarginExecutor() if dry_run else self._client
        if dry_run:
            logger.warning("Dry run: borrow/repay requests will only be logged")

        self._notifier = DecisionNotifier(build_channels(config.notifications))
        self.strategy: autoborrow.AutoBorrowStrategy = self._registry.create(
            autoborrow.ID,
            config=config.strategy,
            provider=self._session,
            executor=executor,
            notifier=self._notifier,
        )

    async def account(self) -> AccountSnapshot:
        """Refresh and return the margin account snapshot."""
        await self._session.refresh()
        return self._session.current_snapshot()

    async def check(self) -> list[Decision]:
        """Run a single evaluation pass and wait for its dispatches."""
        decisions = await self.strategy.check_and_borrow()
        await self._drain()
        return decisions

    async def _drain(self) -> None:
        await self.strategy.wait_pending()
        await self._stream.wait_pending()
        await self._notifier.wait_pending()

    @staticmethod
    def _install_signal_handlers(stop: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, stop.set)

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Run the borrow loop (and repay stream) until ``stop`` is set."""
        if stop is None:
            stop = asyncio.Event()
            self._install_signal_handlers(stop)

        stream_task: asyncio.Task[None] | None = None
        if self.strategy.subscribe(self._stream):
            logger.info("Repay on deposit enabled, starting user data stream")
            stream_task = asyncio.create_task(self._stream.run(), name="user-data-stream")

        self.strategy.start()
        try:
            await stop.wait()
        finally:
            logger.info("Shutting down")
            await self.strategy.stop()
            if stream_task is not None:
                stream_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await stream_task
            await self._drain()
