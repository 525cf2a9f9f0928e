"""Binance cross-margin REST client."""
from __future__ import annotations

import hashlib
import hmac
import logging
import ssl
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from urllib.parse import urlencode

import aiohttp
import certifi

from ...config import ExchangeConfig
from ...errors import ExchangeError
from ...models import AccountSnapshot, Balance

logger = logging.getLogger(__name__)

# Binance liquidates cross-margin accounts at this margin level.
LIQUIDATION_MARGIN_LEVEL = Decimal("1.1")


def _dec(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ExchangeError(f"Malformed decimal value: {value!r}") from None


def format_amount(amount: Decimal) -> str:
    """Plain (non-scientific) decimal string as Binance expects."""
    s = format(amount, "f")
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    if s in ("", "-0"):
        s = "0"
    return s


def margin_tolerance(margin_level: Decimal) -> Decimal:
    """Fraction of the margin level left before liquidation (0 when unknown)."""
    if margin_level <= 0:
        return Decimal("0")
    return Decimal("1") - LIQUIDATION_MARGIN_LEVEL / margin_level


def parse_margin_account(data: Mapping[str, Any]) -> AccountSnapshot:
    """Build an ``AccountSnapshot`` from a ``/sapi/v1/margin/account`` response."""
    margin_level = _dec(data.get("marginLevel", "0"))

    total_asset = _dec(data.get("totalAssetOfBtc", "0"))
    total_liability = _dec(data.get("totalLiabilityOfBtc", "0"))
    margin_ratio = total_liability / total_asset if total_asset > 0 else Decimal("0")

    balances: dict[str, Balance] = {}
    for item in data.get("userAssets", []):
        asset = str(item["asset"])
        balances[asset] = Balance(
            currency=asset,
            available=_dec(item.get("free", "0")),
            locked=_dec(item.get("locked", "0")),
            borrowed=_dec(item.get("borrowed", "0")),
            interest=_dec(item.get("interest", "0")),
        )

    return AccountSnapshot(
        margin_level=margin_level,
        margin_ratio=margin_ratio,
        margin_tolerance=margin_tolerance(margin_level),
        balances=balances,
    )


class BinanceMarginClient:
    """Signed Binance SAPI client covering the cross-margin account and loans."""

    def __init__(self, config: ExchangeConfig) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.api_key = config.api_key
        self.api_secret = config.api_secret
        self.timeout = config.timeout
        self.recv_window = config.recv_window

    def _sign(self, params: dict[str, Any]) -> str:
        # Deterministic query string for the signature
        normalized = {
            k: (v.strip() if isinstance(v, str) else str(v))
            for k, v in sorted(params.items())
            if v is not None
        }
        query = urlencode(normalized)
        signature = hmac.new(
            self.api_secret.encode(), query.encode(), hashlib.sha256
        ).hexdigest()
        return f"{query}&signature={signature}"

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        signed: bool = False,
    ) -> Any:
        """Send a request and return the decoded JSON body."""
        params = dict(params or {})
        if signed:
            if not self.api_key or not self.api_secret:
                raise ExchangeError("Binance API credentials not configured")
            params["timestamp"] = int(time.time() * 1000)
            params["recvWindow"] = self.recv_window
            query = self._sign(params)
        else:
            query = urlencode(params)

        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"
        headers = {"X-MBX-APIKEY": self.api_key}

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.request(
                method,
                url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None

                error_code = None
                if isinstance(data, dict) and "code" in data:
                    try:
                        error_code = int(data["code"])
                    except (TypeError, ValueError):
                        error_code = None

                if response.status >= 400 or (error_code is not None and error_code < 0):
                    message = (
                        data.get("msg", "") if isinstance(data, dict) else ""
                    ) or f"{method} {path} failed"
                    raise ExchangeError(message, status=response.status, code=error_code)

                return data

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    async def get_margin_account(self) -> AccountSnapshot:
        """Query the cross-margin account."""
        data = await self._request("GET", "/sapi/v1/margin/account", signed=True)
        if not isinstance(data, dict):
            raise ExchangeError("Unexpected margin account response")
        return parse_margin_account(data)

    # ------------------------------------------------------------------
    # Borrow / repay
    # ------------------------------------------------------------------

    async def _borrow_repay(self, kind: str, asset: str, amount: Decimal) -> None:
        data = await self._request(
            "POST",
            "/sapi/v1/margin/borrow-repay",
            {
                "asset": asset,
                "isIsolated": "FALSE",
                "amount": format_amount(amount),
                "type": kind,
            },
            signed=True,
        )
        tran_id = data.get("tranId") if isinstance(data, dict) else None
        logger.info("margin %s %s %s accepted (tranId=%s)", kind.lower(), amount, asset, tran_id)

    async def borrow(self, asset: str, amount: Decimal) -> None:
        await self._borrow_repay("BORROW", asset, amount)

    async def repay(self, asset: str, amount: Decimal) -> None:
        await self._borrow_repay("REPAY", asset, amount)

    # ------------------------------------------------------------------
    # User data stream keys
    # ------------------------------------------------------------------

    async def create_listen_key(self) -> str:
        data = await self._request("POST", "/sapi/v1/userDataStream")
        try:
            return str(data["listenKey"])
        except (KeyError, TypeError):
            raise ExchangeError("Listen key missing from response") from None

    async def keepalive_listen_key(self, listen_key: str) -> None:
        await self._request("PUT", "/sapi/v1/userDataStream", {"listenKey": listen_key})

    async def close_listen_key(self, listen_key: str) -> None:
        await self._request("DELETE", "/sapi/v1/userDataStream", {"listenKey": listen_key})
