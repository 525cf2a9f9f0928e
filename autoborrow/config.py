"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SUPPORTED_EXCHANGES = ("binance",)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarginAssetConfig:
    asset: str
    low: Decimal = Decimal("0")
    max_total_borrow: Decimal = Decimal("0")
    max_quantity_per_borrow: Decimal = Decimal("0")
    # Accepted for compatibility; sizing does not consult it.
    min_quantity_per_borrow: Decimal = Decimal("0")


@dataclass(frozen=True)
class StrategyConfig:
    interval: timedelta = timedelta(minutes=30)
    min_margin_level: Decimal = Decimal("0")
    # Accepted but not consulted by any gate.
    max_margin_level: Decimal = Decimal("0")
    repay_when_deposit: bool = False
    assets: tuple[MarginAssetConfig, ...] = ()


@dataclass(frozen=True)
class ExchangeConfig:
    name: str = "binance"
    api_key: str = ""
    api_secret: str = ""
    base_url: str = "https://api.binance.com"
    stream_url: str = "wss://stream.binance.com:9443/ws"
    timeout: int = 10
    recv_window: int = 5000


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class EmailConfig:
    enabled: bool = False
    alert_email: str = ""
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    sender_email: str = ""
    sender_password: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    email: EmailConfig = field(default_factory=EmailConfig)


@dataclass(frozen=True)
class AppConfig:
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------

_INTERVAL_RE = re.compile(r"^\s*(\d+)\s*([smhd])\s*$")
_INTERVAL_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_interval(value: Any) -> timedelta:
    """Parse a duration such as ``"30m"`` or ``"1h"``. Bare numbers are seconds."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid interval: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    match = _INTERVAL_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid interval: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_INTERVAL_UNITS[unit]: int(amount)})


def parse_decimal(value: Any, name: str) -> Decimal:
    """Convert a YAML scalar to Decimal without going through binary floats."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ConfigurationError(f"'{name}' must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"'{name}' must be a number, got {value!r}") from None
    if not result.is_finite():
        raise ConfigurationError(f"'{name}' must be finite, got {value!r}")
    return result


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_exchange(raw: dict[str, Any]) -> ExchangeConfig:
    return ExchangeConfig(
        name=str(raw.get("name", "binance")).lower(),
        api_key=raw.get("api_key", ""),
        api_secret=raw.get("api_secret", ""),
        base_url=raw.get("base_url", ExchangeConfig.base_url),
        stream_url=raw.get("stream_url", ExchangeConfig.stream_url),
        timeout=int(raw.get("timeout", 10)),
        recv_window=int(raw.get("recv_window", 5000)),
    )


def _build_assets(raw: list[dict[str, Any]]) -> tuple[MarginAssetConfig, ...]:
    assets: list[MarginAssetConfig] = []
    for a in raw:
        a = a or {}
        name = str(a.get("asset", "")).strip().upper()
        assets.append(
            MarginAssetConfig(
                asset=name,
                low=parse_decimal(a.get("low"), f"{name}.low"),
                max_total_borrow=parse_decimal(
                    a.get("maxTotalBorrow"), f"{name}.maxTotalBorrow"
                ),
                max_quantity_per_borrow=parse_decimal(
                    a.get("maxQuantityPerBorrow"), f"{name}.maxQuantityPerBorrow"
                ),
                min_quantity_per_borrow=parse_decimal(
                    a.get("minQuantityPerBorrow"), f"{name}.minQuantityPerBorrow"
                ),
            )
        )
    return tuple(assets)


def _build_strategy(raw: dict[str, Any]) -> StrategyConfig:
    repay = raw.get("repayWhenDeposit", raw.get("autoRepayWhenDeposit", False))
    return StrategyConfig(
        interval=parse_interval(raw.get("interval", "30m")),
        min_margin_level=parse_decimal(raw.get("minMarginLevel"), "minMarginLevel"),
        max_margin_level=parse_decimal(raw.get("maxMarginLevel"), "maxMarginLevel"),
        repay_when_deposit=bool(repay),
        assets=_build_assets(raw.get("assets") or []),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram") or {}
    em = raw.get("email") or {}
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
        email=EmailConfig(
            enabled=bool(em.get("enabled", False)),
            alert_email=em.get("alert_email", ""),
            smtp_server=em.get("smtp_server", "smtp.gmail.com"),
            smtp_port=int(em.get("smtp_port", 587)),
            sender_email=em.get("sender_email", ""),
            sender_password=em.get("sender_password", ""),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from the package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        exchange=_build_exchange(raw.get("exchange") or {}),
        strategy=_build_strategy(raw.get("autoborrow") or {}),
        notifications=_build_notifications(raw.get("notifications") or {}),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if cfg.exchange.name not in SUPPORTED_EXCHANGES:
        raise ConfigurationError(f"Unsupported exchange '{cfg.exchange.name}'")

    strategy = cfg.strategy
    if strategy.interval <= timedelta(0):
        raise ConfigurationError("interval must be greater than zero")

    for name, value in (
        ("minMarginLevel", strategy.min_margin_level),
        ("maxMarginLevel", strategy.max_margin_level),
    ):
        if value < 0:
            raise ConfigurationError(f"{name} must not be negative")

    if strategy.min_margin_level == 0:
        logger.warning(
            "minMarginLevel is 0, auto borrow is disabled; configure it to "
            "control the liquidation risk"
        )

    seen: set[str] = set()
    for asset in strategy.assets:
        if not asset.asset:
            raise ConfigurationError("Margin asset entry has no asset name")
        if asset.asset in seen:
            raise ConfigurationError(f"Margin asset '{asset.asset}' is configured twice")
        seen.add(asset.asset)
        for name in (
            "low",
            "max_total_borrow",
            "max_quantity_per_borrow",
            "min_quantity_per_borrow",
        ):
            if getattr(asset, name) < 0:
                raise ConfigurationError(
                    f"Margin asset '{asset.asset}' has negative {name}"
                )
