"""Binance USDT-M futures REST client — public market data only.

Fetches klines, last prices, and the liquid USDT symbol universe. Every
request is charged against a shared ``RequestBudget``.
"""

import asyncio
import logging
from typing import Optional

import httpx

from patternscout.config import Config
from patternscout.feed.rate_budget import RequestBudget
from patternscout.strategy.models import Candle, Timeframe

logger = logging.getLogger("patternscout")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

# Request weights (Binance futures docs)
_KLINES_WEIGHT = 1
_PRICE_WEIGHT = 1
_TICKER_24H_WEIGHT = 40


def parse_kline(row: list) -> Candle:
    """Convert a raw kline array ``[openTime, o, h, l, c, v, closeTime, ...]``."""
    return Candle(
        open_time=int(row[0]),
        close_time=int(row[6]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
    )


class BinanceClient:
    """Async client wrapping the Binance futures public REST API."""

    def __init__(self, config: Config, budget: Optional[RequestBudget] = None) -> None:
        self._base_url = config.binance_base_url.rstrip("/")
        self._budget = budget or RequestBudget(config.request_weight_limit)

    @property
    def budget(self) -> RequestBudget:
        return self._budget

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _get_with_retry(
        self,
        path: str,
        weight: int,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """GET *path* with budget accounting and exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429). A 429 also marks the budget exhausted for this minute.
        Non-retryable errors are raised immediately.
        """
        url = f"{self._base_url}{path}"
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            await self._budget.acquire(weight)
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(url, params=params, timeout=30.0)

                self._budget.update_from_headers(resp.headers)

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    if resp.status_code == 429:
                        self._budget.mark_exhausted()
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Binance GET %s returned %d — retry %d/%d in %.1fs",
                        path, resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "Binance GET %s transport error (%s) — retry %d/%d in %.1fs",
                    path, exc, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    # ── Candles ──────────────────────────────────────────────────────────

    async def fetch_recent_candles(
        self,
        symbol: str,
        interval: Timeframe,
        limit: int,
    ) -> list[Candle]:
        """Fetch the last *limit* klines, the in-progress one included.

        Only suitable for price windows; pattern and zone code must use
        :meth:`fetch_candles`.
        """
        resp = await self._get_with_retry(
            "/fapi/v1/klines",
            _KLINES_WEIGHT,
            params={"symbol": symbol, "interval": interval.value, "limit": limit},
        )
        return [parse_kline(row) for row in resp.json()]

    async def fetch_candles(
        self,
        symbol: str,
        interval: Timeframe,
        limit: int = 350,
    ) -> list[Candle]:
        """Fetch up to *limit* closed candles, oldest first.

        One extra kline is requested because the newest one is always the
        candle still forming; it is dropped.
        """
        candles = await self.fetch_recent_candles(symbol, interval, limit + 1)
        return candles[:-1]

    # ── Tickers ──────────────────────────────────────────────────────────

    async def fetch_price(self, symbol: str) -> float:
        """Return the last traded price of *symbol*."""
        resp = await self._get_with_retry(
            "/fapi/v1/ticker/price", _PRICE_WEIGHT, params={"symbol": symbol},
        )
        return float(resp.json()["price"])

    async def fetch_usdt_symbols(self, min_quote_volume: float = 10_000_000.0) -> list[str]:
        """Return USDT-quoted symbols with 24h quote volume above the floor."""
        resp = await self._get_with_retry("/fapi/v1/ticker/24hr", _TICKER_24H_WEIGHT)
        symbols = [
            t["symbol"] for t in resp.json()
            if t["symbol"].endswith("USDT") and float(t["quoteVolume"]) > min_quote_volume
        ]
        logger.info("Found %d USDT symbols above %.0f quote volume",
                    len(symbols), min_quote_volume)
        return symbols
