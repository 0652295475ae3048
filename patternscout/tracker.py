"""Signal tracker — polls prices for open signals and advances their lifecycle.

Signals are evaluated concurrently; updates to any one signal are
serialised through a per-signal lock. One failing signal is logged and
does not stop the others.
"""

import asyncio
import logging
import time
from collections import defaultdict
from typing import Callable, Optional

from patternscout.feed.binance_client import BinanceClient
from patternscout.repos.signal_repo import SignalRepo
from patternscout.strategy.models import Timeframe
from patternscout.tracking.lifecycle import advance_signal, apply_transition
from patternscout.tracking.models import (
    DEFAULT_SPLIT,
    PartialCloseSplit,
    PriceWindow,
    Signal,
    Transition,
)
from patternscout.tracking.outcomes import format_pnl

logger = logging.getLogger("patternscout.tracker")

# 1-minute candles fetched per check; covers the gap between polls.
WINDOW_CANDLES = 5


def _now_ms() -> int:
    return int(time.time() * 1000)


class SignalTracker:
    """Advances every open signal against the latest price window.

    Args:
        feed: Price source.
        repo: Signal persistence.
        split: Partial close percentages.
        clock: Returns the current time in epoch milliseconds.
        window_candles: 1-minute candles inspected per check.
    """

    def __init__(
        self,
        feed: BinanceClient,
        repo: SignalRepo,
        split: PartialCloseSplit = DEFAULT_SPLIT,
        clock: Callable[[], int] = _now_ms,
        window_candles: int = WINDOW_CANDLES,
    ) -> None:
        self._feed = feed
        self._repo = repo
        self._split = split
        self._clock = clock
        self._window_candles = window_candles
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._running = False

    def stop(self) -> None:
        """Signal the loop to stop after the current cycle."""
        self._running = False

    async def track_signal(self, signal: Signal) -> Optional[Transition]:
        """Evaluate one signal; persist and return the transition if any."""
        async with self._locks[signal.id]:
            current = self._repo.get_signal(signal.id) or signal

            candles = await self._feed.fetch_recent_candles(
                current.symbol, Timeframe.M1, self._window_candles,
            )
            # Only bars opened since the last save; earlier extremes are
            # already reflected in the stored state.
            since = max(current.created_at, current.updated_at)
            fresh = [c for c in candles if c.open_time >= since]
            if not fresh:
                return None

            transition = advance_signal(current, PriceWindow.from_candles(fresh), self._split)
            if not transition.changed:
                return None

            now = self._clock()
            updated = apply_transition(current, transition, now)
            self._repo.update_signal(
                signal_id=updated.id,
                status=updated.status,
                current_sl=updated.current_sl,
                partial_closed=updated.partial_closed,
                pnl_percent=updated.pnl_percent,
                updated_at=now,
            )
            logger.info(
                "Signal #%d %s: %s → %s, pnl %s%s",
                updated.id, updated.symbol, current.status.value,
                updated.status.value, format_pnl(updated.pnl_percent),
                " (breakeven)" if transition.outcome.is_breakeven else "",
            )
            return transition

    async def _track_guarded(self, signal: Signal) -> Optional[Transition]:
        try:
            return await self.track_signal(signal)
        except Exception as exc:
            logger.error("Tracking signal #%s %s failed: %s", signal.id, signal.symbol, exc)
            return None

    async def track_once(self) -> list[Transition]:
        """Check all open signals once; return the transitions that happened."""
        signals = self._repo.get_open_signals()
        results = await asyncio.gather(*(self._track_guarded(s) for s in signals))
        return [r for r in results if r is not None]

    async def run(self, poll_interval: int = 60, max_cycles: int = 0) -> int:
        """Track until stopped.

        Args:
            poll_interval: Seconds between cycles.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            Total number of transitions applied.
        """
        self._running = True
        cycle = 0
        applied = 0

        while self._running:
            cycle += 1
            try:
                transitions = await self.track_once()
                applied += len(transitions)
                logger.debug("Cycle %d: %d transition(s)", cycle, len(transitions))
            except Exception as exc:
                logger.error("Cycle %d error: %s", cycle, exc)

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep: checks _running every second
            for _ in range(poll_interval):
                if not self._running:
                    break
                await asyncio.sleep(1)

        self._running = False
        return applied
