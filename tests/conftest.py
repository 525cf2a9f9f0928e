"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from autoborrow.config import (
    AppConfig,
    EmailConfig,
    ExchangeConfig,
    MarginAssetConfig,
    NotificationsConfig,
    StrategyConfig,
    TelegramConfig,
)
from autoborrow.models import AccountSnapshot, Balance


class FakeProvider:
    """In-memory account snapshot provider."""

    def __init__(self, snapshot: AccountSnapshot | None = None) -> None:
        self.snapshot = snapshot or AccountSnapshot()
        self.refresh_calls = 0
        self.refresh_error: Exception | None = None

    async def refresh(self) -> None:
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error

    def current_snapshot(self) -> AccountSnapshot:
        return self.snapshot


class FakeExecutor:
    """Margin executor backed by AsyncMocks."""

    def __init__(self) -> None:
        self.borrow = AsyncMock()
        self.repay = AsyncMock()


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def eth_asset() -> MarginAssetConfig:
    return MarginAssetConfig(
        asset="ETH",
        low=Decimal("3.0"),
        max_quantity_per_borrow=Decimal("1.0"),
        max_total_borrow=Decimal("10.0"),
    )


@pytest.fixture()
def strategy_config(eth_asset: MarginAssetConfig) -> StrategyConfig:
    return StrategyConfig(
        interval=timedelta(minutes=30),
        min_margin_level=Decimal("1.5"),
        repay_when_deposit=True,
        assets=(
            eth_asset,
            MarginAssetConfig(
                asset="USDT",
                low=Decimal("1000"),
                max_quantity_per_borrow=Decimal("100"),
            ),
        ),
    )


@pytest.fixture()
def sample_app_config(strategy_config: StrategyConfig) -> AppConfig:
    return AppConfig(
        exchange=ExchangeConfig(api_key="key", api_secret="secret"),
        strategy=strategy_config,
        notifications=NotificationsConfig(
            telegram=TelegramConfig(
                enabled=True,
                alert_bot_token="fake-alert-token",
                log_bot_token="fake-log-token",
                chat_id="12345",
            ),
            email=EmailConfig(enabled=False),
        ),
    )


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def healthy_snapshot() -> AccountSnapshot:
    return AccountSnapshot(
        margin_level=Decimal("3.2"),
        margin_ratio=Decimal("0.3"),
        margin_tolerance=Decimal("0.65"),
        balances={
            "ETH": Balance(
                currency="ETH", available=Decimal("0.5"), borrowed=Decimal("9.5")
            ),
            "USDT": Balance(currency="USDT", available=Decimal("2000")),
        },
    )


@pytest.fixture()
def provider(healthy_snapshot: AccountSnapshot) -> FakeProvider:
    return FakeProvider(healthy_snapshot)


@pytest.fixture()
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def notifier() -> MagicMock:
    return MagicMock()


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    exchange:
      name: binance
      api_key: "key"
      api_secret: "secret"
      timeout: 5
    autoborrow:
      interval: 30m
      repayWhenDeposit: true
      minMarginLevel: 1.5
      maxMarginLevel: 3.0
      assets:
        - asset: ETH
          low: 3.0
          maxQuantityPerBorrow: 1.0
          maxTotalBorrow: 10.0
        - asset: usdt
          low: 1000.0
          maxQuantityPerBorrow: 100.0
          minQuantityPerBorrow: 10
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: 999
      email:
        enabled: false
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample exchange payloads
# ---------------------------------------------------------------------------


@pytest.fixture()
def margin_account_payload() -> dict:
    return {
        "borrowEnabled": True,
        "marginLevel": "2.2",
        "totalAssetOfBtc": "2.0",
        "totalLiabilityOfBtc": "0.5",
        "totalNetAssetOfBtc": "1.5",
        "tradeEnabled": True,
        "transferEnabled": True,
        "userAssets": [
            {
                "asset": "ETH",
                "borrowed": "9.5",
                "free": "0.5",
                "interest": "0.001",
                "locked": "0.25",
                "netAsset": "-8.751",
            },
            {
                "asset": "USDT",
                "borrowed": "0",
                "free": "1500.12",
                "interest": "0",
                "locked": "0",
                "netAsset": "1500.12",
            },
        ],
    }
