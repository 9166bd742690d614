"""
Binance spot + USD-M futures ``bookTicker`` WebSocket client.

Pushes every best bid/ask change of one symbol on both venues to the
registered callbacks.  Each venue has its own connection and ``asyncio`` task
on the shared event loop; a dropped connection is re-opened after
``reconnect_delay_secs``.

Usage::

    import asyncio
    from carry_arb.exchanges.binance_websocket import BinanceBookTickerStream

    stream = BinanceBookTickerStream(
        spot_ticker="BTCUSDT",
        futures_ticker="BTCUSDT",
        on_spot_ticker=engine.on_spot_ticker,
        on_futures_ticker=engine.on_futures_ticker,
    )
    asyncio.run(stream.run_forever())
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from carry_arb.exchanges.base import MarketFeed, TickerCallback
from carry_arb.strategies.ledger import LedgerInvariantError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SPOT_WS_BASE = "wss://stream.binance.com:9443/stream?streams="
FUTURES_WS_BASE = "wss://fstream.binance.com/stream?streams="

# Seconds to wait before attempting a reconnect.
DEFAULT_RECONNECT_DELAY_SECS = 5


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_book_ticker(raw: str | bytes) -> Optional[tuple[str, str, str]]:
    """Extract ``(symbol, bid, ask)`` from a combined-stream message.

    Spot payloads carry no ``e`` field, futures payloads carry
    ``"e": "bookTicker"``; both use ``b``/``a`` for best bid/ask price.
    Prices stay strings so no precision is lost before Decimal conversion.
    Returns ``None`` for anything that is not a book ticker.
    """
    msg = json.loads(raw)
    data = msg.get("data", msg)
    if not isinstance(data, dict):
        return None
    if data.get("e", "bookTicker") != "bookTicker":
        return None
    if "b" not in data or "a" not in data or "s" not in data:
        return None
    return data["s"], data["b"], data["a"]


# ---------------------------------------------------------------------------
# Stream client
# ---------------------------------------------------------------------------

class BinanceBookTickerStream(MarketFeed):
    """
    Subscribe to best bid/ask updates of one symbol on spot and futures.

    Parameters
    ----------
    spot_ticker, futures_ticker : str
        Raw Binance symbols, e.g. ``"BTCUSDT"``.
    on_spot_ticker, on_futures_ticker : TickerCallback
        Signature: ``(bid, ask) -> Any``.  Called on the event-loop thread;
        must be non-blocking.
    reconnect_delay_secs : int
        Pause between reconnect attempts.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    def __init__(
        self,
        spot_ticker: str,
        futures_ticker: str,
        on_spot_ticker: TickerCallback,
        on_futures_ticker: TickerCallback,
        reconnect_delay_secs: int = DEFAULT_RECONNECT_DELAY_SECS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.spot_ticker = spot_ticker.upper()
        self.futures_ticker = futures_ticker.upper()
        self.on_spot_ticker = on_spot_ticker
        self.on_futures_ticker = on_futures_ticker
        self.reconnect_delay_secs = reconnect_delay_secs
        self.logger = logger or logging.getLogger(__name__)
        self._stop_event: asyncio.Event | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_forever(self) -> None:
        """Run both venue connections until :meth:`stop` is called."""
        self._stop_event = asyncio.Event()
        self.logger.info(
            f"Starting bookTicker streams: spot={self.spot_ticker}, "
            f"futures={self.futures_ticker}."
        )
        tasks = [
            asyncio.create_task(
                self._run_venue("spot", self.build_url(SPOT_WS_BASE, self.spot_ticker), self.on_spot_ticker)
            ),
            asyncio.create_task(
                self._run_venue("futures", self.build_url(FUTURES_WS_BASE, self.futures_ticker), self.on_futures_ticker)
            ),
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()

    def stop(self) -> None:
        """Signal both connections to close gracefully."""
        if self._stop_event:
            self._stop_event.set()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def build_url(base: str, ticker: str) -> str:
        return f"{base}{ticker.lower()}@bookTicker"

    def _stopping(self) -> bool:
        return bool(self._stop_event and self._stop_event.is_set())

    async def _run_venue(self, venue: str, url: str, callback: TickerCallback) -> None:
        """Connect and listen for one venue, reconnecting on error."""
        while not self._stopping():
            try:
                self.logger.info(f"[{venue}] Connecting to {url} …")
                async with websockets.connect(url, ping_interval=20, ping_timeout=10) as ws:
                    self.logger.info(f"[{venue}] Connected.")
                    await self._listen(ws, venue, callback)

            except LedgerInvariantError:
                raise

            except (ConnectionClosedError, ConnectionClosedOK) as exc:
                if self._stopping():
                    break
                self.logger.warning(
                    f"[{venue}] Connection closed ({exc}). "
                    f"Reconnecting in {self.reconnect_delay_secs}s …"
                )
                await asyncio.sleep(self.reconnect_delay_secs)

            except Exception as exc:
                if self._stopping():
                    break
                self.logger.error(
                    f"[{venue}] Unexpected error: {exc}. "
                    f"Reconnecting in {self.reconnect_delay_secs}s …"
                )
                await asyncio.sleep(self.reconnect_delay_secs)

        self.logger.info(f"[{venue}] Stream stopped.")

    async def _listen(self, ws, venue: str, callback: TickerCallback) -> None:
        """Receive messages and forward book-ticker updates."""
        async for raw in ws:
            if self._stopping():
                break
            try:
                parsed = parse_book_ticker(raw)
            except (ValueError, TypeError, AttributeError) as exc:
                self.logger.error(f"[{venue}] Message handling error: {exc}")
                continue
            if parsed is None:
                continue
            _, bid, ask = parsed
            callback(bid, ask)
