"""Binance margin user data stream — balance change events."""
from __future__ import annotations

import asyncio
import contextlib
import functools
import json
import logging
import ssl
from decimal import Decimal
from typing import Any, Mapping

import aiohttp
import certifi

from ...config import ExchangeConfig
from ...errors import ExchangeError
from ...events import BalanceChangeEmitter, parse_account_position, parse_balance_update
from .client import BinanceMarginClient
from .session import MarginAccountSession

logger = logging.getLogger(__name__)

_loads = functools.partial(json.loads, parse_float=Decimal)


class BinanceUserDataStream(BalanceChangeEmitter):
    """Listens to the cross-margin user data stream.

    ``balanceUpdate`` events (deposits, withdrawals, transfers) are emitted as
    ``BalanceChange``. ``outboundAccountPosition`` events only refresh the
    balances held by the account session.
    """

    KEEPALIVE_SECONDS = 30 * 60
    RECONNECT_DELAY_SECONDS = 5

    def __init__(
        self,
        client: BinanceMarginClient,
        config: ExchangeConfig,
        session: MarginAccountSession | None = None,
    ) -> None:
        super().__init__()
        self._client = client
        self._stream_url = config.stream_url.rstrip("/")
        self._session = session

    def handle_message(self, payload: Mapping[str, Any]) -> bool:
        """Dispatch one decoded stream payload.

        Returns False when the connection must be re-established.
        """
        event_type = payload.get("e")
        if event_type == "balanceUpdate":
            self.emit(parse_balance_update(payload))
        elif event_type == "outboundAccountPosition":
            if self._session is not None:
                self._session.apply_balances(parse_account_position(payload))
        elif event_type == "listenKeyExpired":
            logger.warning("Listen key expired, reconnecting")
            return False
        else:
            logger.debug("Ignoring user data event %s", event_type)
        return True

    async def _keepalive(self, listen_key: str) -> None:
        while True:
            await asyncio.sleep(self.KEEPALIVE_SECONDS)
            try:
                await self._client.keepalive_listen_key(listen_key)
            except Exception as e:
                logger.warning("Listen key keepalive failed: %s", e)

    async def _run_once(self) -> None:
        listen_key = await self._client.create_listen_key()
        keepalive = asyncio.create_task(self._keepalive(listen_key))

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.ws_connect(
                    f"{self._stream_url}/{listen_key}", heartbeat=60
                ) as ws:
                    logger.info("User data stream connected")
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            try:
                                if not self.handle_message(msg.json(loads=_loads)):
                                    break
                            except (ExchangeError, KeyError, ValueError) as e:
                                logger.warning("Ignoring malformed stream event: %s", e)
                        elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                            break
        finally:
            keepalive.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await keepalive
            try:
                await self._client.close_listen_key(listen_key)
            except Exception as e:
                logger.debug("Closing listen key failed: %s", e)

    async def run(self) -> None:
        """Consume the stream until cancelled, reconnecting after failures."""
        while True:
            try:
                await self._run_once()
                logger.warning("User data stream closed")
            except ExchangeError as e:
                logger.warning("User data stream error: %s", e)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.warning("User data stream disconnected: %s", e)
            await asyncio.sleep(self.RECONNECT_DELAY_SECONDS)
