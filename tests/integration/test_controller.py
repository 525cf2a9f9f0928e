"""Integration tests for the Controller — wiring with mocked exchange I/O."""
from __future__ import annotations

import asyncio
import dataclasses
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from autoborrow.config import AppConfig
from autoborrow.exchanges.dry_run import DryRunMarginExecutor
from autoborrow.models import AccountSnapshot, Balance, MarginAction
from autoborrow.services.controller import Controller

D = Decimal


async def _forever() -> None:
    await asyncio.sleep(3600)


@pytest.fixture()
def snapshot() -> AccountSnapshot:
    return AccountSnapshot(
        margin_level=D("3"),
        balances={
            "ETH": Balance(currency="ETH", available=D("0.5"), borrowed=D("9.5")),
            "USDT": Balance(currency="USDT", available=D("5000")),
        },
    )


@pytest.fixture()
def controller(sample_app_config: AppConfig, snapshot: AccountSnapshot) -> Controller:
    controller = Controller(sample_app_config)
    client = controller._client
    client.get_margin_account = AsyncMock(return_value=snapshot)
    client.borrow = AsyncMock()
    client.repay = AsyncMock()
    channel = AsyncMock()
    controller._notifier._channels = [channel]
    return controller


class TestCheck:
    @pytest.mark.asyncio
    async def test_check_borrows_and_alerts(self, controller: Controller) -> None:
        decisions = await controller.check()

        assert [(d.action, d.asset, d.amount) for d in decisions] == [
            (MarginAction.BORROW, "ETH", D("0.5"))
        ]
        controller._client.borrow.assert_awaited_once_with("ETH", D("0.5"))
        channel = controller._notifier._channels[0]
        channel.send_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dry_run_never_calls_exchange(
        self, sample_app_config: AppConfig, snapshot: AccountSnapshot
    ) -> None:
        controller = Controller(sample_app_config, dry_run=True)
        controller._client.get_margin_account = AsyncMock(return_value=snapshot)
        controller._client.borrow = AsyncMock()
        controller._notifier._channels = []

        decisions = await controller.check()

        assert len(decisions) == 1
        controller._client.borrow.assert_not_called()
        assert isinstance(controller.strategy._executor, DryRunMarginExecutor)
        assert controller.strategy._executor.calls == [("borrow", "ETH", D("0.5"))]

    @pytest.mark.asyncio
    async def test_account(self, controller: Controller, snapshot: AccountSnapshot) -> None:
        assert await controller.account() is snapshot


class TestRun:
    @pytest.mark.asyncio
    async def test_run_until_stopped(self, controller: Controller) -> None:
        controller._stream.run = AsyncMock(side_effect=_forever)
        stop = asyncio.Event()

        task = asyncio.create_task(controller.run(stop))
        await asyncio.sleep(0.05)
        assert controller.strategy.running
        controller._stream.run.assert_called_once()

        stop.set()
        await asyncio.wait_for(task, timeout=1)

        assert not controller.strategy.running
        controller._client.borrow.assert_awaited_once_with("ETH", D("0.5"))

    @pytest.mark.asyncio
    async def test_deposit_event_triggers_repay(
        self, sample_app_config: AppConfig
    ) -> None:
        controller = Controller(sample_app_config)
        stressed = AccountSnapshot(
            margin_level=D("1.2"),
            balances={"ETH": Balance(currency="ETH", available=D("50"), borrowed=D("30"))},
        )
        controller._client.get_margin_account = AsyncMock(return_value=stressed)
        controller._client.repay = AsyncMock()
        controller._notifier._channels = []
        controller._stream.run = AsyncMock(side_effect=_forever)
        stop = asyncio.Event()

        task = asyncio.create_task(controller.run(stop))
        await asyncio.sleep(0.05)
        controller._stream.handle_message({"e": "balanceUpdate", "a": "ETH", "d": "10"})
        await controller._stream.wait_pending()
        stop.set()
        await asyncio.wait_for(task, timeout=1)

        controller._client.repay.assert_awaited_once_with("ETH", D("50"))

    @pytest.mark.asyncio
    async def test_stream_not_started_without_repay_on_deposit(
        self, sample_app_config: AppConfig, snapshot: AccountSnapshot
    ) -> None:
        config = dataclasses.replace(
            sample_app_config,
            strategy=dataclasses.replace(sample_app_config.strategy, repay_when_deposit=False),
        )
        controller = Controller(config)
        controller._client.get_margin_account = AsyncMock(return_value=snapshot)
        controller._client.borrow = AsyncMock()
        controller._notifier._channels = []
        controller._stream.run = MagicMock()
        stop = asyncio.Event()

        task = asyncio.create_task(controller.run(stop))
        await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

        controller._stream.run.assert_not_called()
