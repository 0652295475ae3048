"""Request budget — Binance request-weight accounting per minute.

A single ``RequestBudget`` is created by the caller and shared by every
client that talks to the same API key/IP. Acquisitions are serialised
with an ``asyncio.Lock``.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Mapping

logger = logging.getLogger("patternscout")

_MINUTE_MS = 60_000


class RequestBudget:
    """Tracks used request weight and blocks until the next minute when full.

    Args:
        weight_limit: Allowed weight per minute.
        clock: Returns the current time in epoch milliseconds.
        sleep: Awaitable sleep, in seconds.
    """

    def __init__(
        self,
        weight_limit: int = 1200,
        clock: Callable[[], int] = lambda: int(time.time() * 1000),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.weight_limit = weight_limit
        self.weight_used = 0
        self._clock = clock
        self._sleep = sleep
        self._window_start = self._minute(clock())
        self._lock = asyncio.Lock()

    @staticmethod
    def _minute(now_ms: int) -> int:
        return now_ms // _MINUTE_MS * _MINUTE_MS

    def _reset_if_needed(self) -> None:
        current = self._minute(self._clock())
        if current > self._window_start:
            self.weight_used = 0
            self._window_start = current

    def can_spend(self, weight: int) -> bool:
        self._reset_if_needed()
        return self.weight_used + weight <= self.weight_limit

    async def wait_for_next_minute(self) -> None:
        now = self._clock()
        wait_ms = self._minute(now) + _MINUTE_MS - now
        logger.warning("Request budget exhausted, waiting %.1fs", wait_ms / 1000)
        await self._sleep(wait_ms / 1000)
        self._reset_if_needed()

    async def acquire(self, weight: int = 1) -> None:
        """Reserve *weight*, waiting for the next minute if needed."""
        if weight > self.weight_limit:
            raise ValueError(
                f"Request weight {weight} exceeds the limit {self.weight_limit}"
            )
        async with self._lock:
            while not self.can_spend(weight):
                await self.wait_for_next_minute()
            self.weight_used += weight

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """Sync used weight from the exchange's own count."""
        used = headers.get("x-mbx-used-weight-1m") or headers.get("x-mbx-used-weight")
        if used:
            self._reset_if_needed()
            self.weight_used = int(used)

    def mark_exhausted(self) -> None:
        """Treat the current minute as spent (after a 429)."""
        self._reset_if_needed()
        self.weight_used = self.weight_limit

    def status(self) -> dict:
        self._reset_if_needed()
        return {
            "weight_used": self.weight_used,
            "weight_limit": self.weight_limit,
            "percentage": round(self.weight_used / self.weight_limit * 100, 2),
        }
