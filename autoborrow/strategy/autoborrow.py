"""Auto borrow strategy — scheduled borrow checks and repay-on-deposit."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Awaitable

from ..config import StrategyConfig
from ..interfaces.account import AccountSnapshotProvider
from ..interfaces.balance_stream import BalanceUpdateSource
from ..interfaces.margin import ensure_margin_capability
from ..interfaces.notifier import Notifier
from ..models import AccountSnapshot, BalanceChange, Decision, MarginAction
from .sizer import compute_borrow_amount

logger = logging.getLogger(__name__)

ID = "autoborrow"


class AutoBorrowStrategy:
    """Keeps margin balances above their configured floor without risking liquidation.

    The borrow path runs on a fixed interval (``run``); the repay path runs
    whenever a balance change is delivered (``handle_balance_change``). Both
    read the same account provider and dispatch through the same executor.
    """

    def __init__(
        self,
        config: StrategyConfig,
        provider: AccountSnapshotProvider,
        executor: object,
        notifier: Notifier,
    ) -> None:
        self._config = config
        self._provider = provider
        self._executor = ensure_margin_capability(executor)
        self._notifier = notifier

        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[object]] = set()

        if config.min_margin_level == 0:
            logger.warning(
                "minMarginLevel is 0, you should configure this minimal margin "
                "level for controlling the liquidation risk"
            )

    @property
    def id(self) -> str:
        return ID

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, source: BalanceUpdateSource) -> bool:
        """Attach the repay trigger to ``source`` when repay-on-deposit is enabled."""
        if not self._config.repay_when_deposit:
            return False
        source.on_balance_change(self.handle_balance_change)
        return True

    # ------------------------------------------------------------------
    # Borrow path
    # ------------------------------------------------------------------

    async def check_and_borrow(self) -> list[Decision]:
        """Run one evaluation pass and return the borrow decisions dispatched."""
        min_margin_level = self._config.min_margin_level
        if min_margin_level == 0:
            return []

        try:
            await self._provider.refresh()
        except Exception as e:
            logger.error("can not update account: %s", e)
            return []

        account = self._provider.current_snapshot()
        margin_level = account.margin_level

        logger.info(
            "current account margin level: %s margin ratio: %s, margin tolerance: %s",
            account.margin_level,
            account.margin_ratio,
            account.margin_tolerance,
        )

        # Never add debt to an account already under the safety floor.
        if margin_level < min_margin_level:
            logger.info(
                "current margin level %s < min margin level %s, skip autoborrow",
                margin_level,
                min_margin_level,
            )
            self._report_pass(account, [], skipped=True)
            return []

        if not account.balances:
            logger.warning("balance is empty, skip autoborrow")
            return []

        decisions: list[Decision] = []
        for asset in self._config.assets:
            if asset.low == 0:
                logger.warning("margin asset %s low balance is not set, skip", asset.asset)
                continue

            amount = compute_borrow_amount(asset, account.balance(asset.asset))
            if amount <= 0:
                continue

            decision = Decision(
                action=MarginAction.BORROW,
                asset=asset.asset,
                amount=amount,
                margin_level=margin_level,
                min_margin_level=min_margin_level,
            )
            self._notify(decision)
            logger.info("sending borrow request %s %s", amount, asset.asset)
            self._dispatch(self._executor.borrow(asset.asset, amount), decision)
            decisions.append(decision)

        self._report_pass(account, decisions)
        return decisions

    def _notify(self, decision: Decision) -> None:
        try:
            self._notifier.notify(decision)
        except Exception as e:
            logger.error(
                "Notifier failed for %s %s: %s", decision.action.value, decision.asset, e
            )

    def _report_pass(
        self, account: AccountSnapshot, decisions: list[Decision], skipped: bool = False
    ) -> None:
        try:
            self._notifier.notify_pass(
                account.margin_level, self._config.min_margin_level, decisions, skipped=skipped
            )
        except Exception as e:
            logger.error("Notifier failed for pass summary: %s", e)

    def _dispatch(self, coro: Awaitable[object], decision: Decision) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(functools.partial(self._on_dispatch_done, decision))

    def _on_dispatch_done(self, decision: Decision, task: asyncio.Future[object]) -> None:
        self._pending.discard(task)  # type: ignore[arg-type]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "margin %s %s %s failed: %s",
                decision.action.value.lower(),
                decision.amount,
                decision.asset,
                exc,
            )

    async def wait_pending(self) -> None:
        """Wait for in-flight borrow requests to settle."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Repay path
    # ------------------------------------------------------------------

    async def handle_balance_change(self, event: BalanceChange) -> Decision | None:
        """Sweep the available balance into debt repayment after a deposit.

        Only fires while the account is at or below the minimum margin level.
        """
        min_margin_level = self._config.min_margin_level
        if min_margin_level == 0:
            return None

        # ignore outflow
        if not event.is_inflow:
            return None

        # The streamed balances may not include the deposit yet.
        try:
            await self._provider.refresh()
        except Exception as e:
            logger.error("can not update account: %s", e)
            return None

        account = self._provider.current_snapshot()
        if account.margin_level > min_margin_level:
            return None

        balance = account.balance(event.asset)
        if balance is None:
            return None
        if balance.available == 0 or balance.borrowed == 0:
            return None

        amount = balance.available
        decision = Decision(
            action=MarginAction.REPAY,
            asset=balance.currency,
            amount=amount,
            margin_level=account.margin_level,
            min_margin_level=min_margin_level,
        )
        self._notify(decision)
        logger.info("sending repay request %s %s", amount, event.asset)

        try:
            await self._executor.repay(event.asset, amount)
        except Exception as e:
            logger.error("margin repay error: %s", e)

        return decision

    # ------------------------------------------------------------------
    # Scheduler
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Evaluate now, then once per interval until ``stop`` is requested."""
        interval = self._config.interval.total_seconds()
        loop = asyncio.get_running_loop()
        logger.info("Starting auto borrow loop (every %s)", self._config.interval)

        next_tick = loop.time()
        while not self._stop.is_set():
            try:
                await self.check_and_borrow()
            except Exception as e:
                logger.error("Error in auto borrow pass: %s", e)

            next_tick += interval
            now = loop.time()
            if next_tick < now:
                # Ticks that elapsed during a slow pass collapse into one.
                next_tick = now

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                continue

        logger.info("Auto borrow loop stopped")

    def start(self) -> asyncio.Task[None]:
        """Start the scheduler as a background task."""
        if self.running:
            raise RuntimeError("auto borrow loop is already running")
        self._stop.clear()
        self._task = asyncio.create_task(self.run(), name=f"{ID}-loop")
        return self._task

    async def stop(self) -> None:
        """Signal the scheduler to stop and wait for it to exit.

        In-flight borrow requests are not cancelled; see ``wait_pending``.
        """
        self._stop.set()
        task, self._task = self._task, None
        if task is not None:
            await task
