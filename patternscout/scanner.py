"""Pattern scanner — runs detection and risk planning across many symbols.

Symbols are processed in concurrent batches. A failure on one symbol is
logged and counted; it never aborts the batch.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from patternscout.feed.binance_client import BinanceClient
from patternscout.repos.signal_repo import SignalRepo
from patternscout.risk.models import AtrSet, RiskProfile
from patternscout.risk.profile import calculate_risk_profile
from patternscout.strategy.detector import MIN_HISTORY, detect_patterns
from patternscout.strategy.indicators import calculate_atr
from patternscout.strategy.models import (
    ZONE_TIMEFRAMES,
    Candle,
    PatternCandidate,
    Timeframe,
    Zone,
)
from patternscout.strategy.sr_zones import detect_zones
from patternscout.strategy.zone_tests import ZoneTestTracker
from patternscout.tracking.models import Signal

logger = logging.getLogger("patternscout.scanner")

# Closed candles requested per timeframe.
CANDLE_LIMIT = 350

DEFAULT_BATCH_SIZE = 20


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ScanReport:
    """Counters for one scan pass over a timeframe."""

    timeframe: Timeframe
    scanned: int = 0
    skipped: int = 0
    candidates: int = 0
    vetoed: int = 0
    rejected: int = 0
    created: int = 0
    errors: int = 0
    signal_ids: list[int] = field(default_factory=list)


def build_signal(
    symbol: str,
    candidate: PatternCandidate,
    profile: RiskProfile,
    now_ms: int,
) -> Signal:
    """Turn a valid plan into a new ``OPEN`` signal."""
    if not profile.valid or profile.tp1 is None:
        raise ValueError(f"Cannot open a signal from an invalid plan for {symbol}")
    return Signal(
        symbol=symbol,
        timeframe=candidate.timeframe,
        direction=candidate.direction,
        pattern=candidate.kind,
        entry=profile.entry,
        initial_sl=profile.stop_loss,
        current_sl=profile.stop_loss,
        tp1=profile.tp1,
        tp2=profile.tp2,
        tp3=profile.tp3,
        score=candidate.score,
        created_at=now_ms,
        updated_at=now_ms,
    )


class Scanner:
    """Scans symbols for one timeframe and opens signals for valid plans.

    Args:
        feed: Closed-candle source.
        repo: Signal persistence.
        zone_tests: Shared zone-touch history, owned by the caller.
        batch_size: Symbols processed concurrently.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        feed: BinanceClient,
        repo: SignalRepo,
        zone_tests: ZoneTestTracker,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._feed = feed
        self._repo = repo
        self._zone_tests = zone_tests
        self._batch_size = batch_size
        self._clock = clock

    async def scan(self, timeframe: Timeframe, symbols: list[str]) -> ScanReport:
        """Scan *symbols* on *timeframe* in batches."""
        report = ScanReport(timeframe=timeframe)
        for start in range(0, len(symbols), self._batch_size):
            batch = symbols[start:start + self._batch_size]
            await asyncio.gather(
                *(self._scan_guarded(symbol, timeframe, report) for symbol in batch)
            )
        logger.info(
            "Scan %s done: %d scanned, %d candidates, %d vetoed, %d rejected, "
            "%d created, %d errors",
            timeframe.value, report.scanned, report.candidates, report.vetoed,
            report.rejected, report.created, report.errors,
        )
        return report

    async def _scan_guarded(self, symbol: str, timeframe: Timeframe, report: ScanReport) -> None:
        try:
            await self.scan_symbol(symbol, timeframe, report)
        except Exception as exc:
            report.errors += 1
            logger.error("Scan of %s %s crashed: %s", symbol, timeframe.value, exc)

    async def _fetch_series(
        self,
        symbol: str,
        timeframe: Timeframe,
    ) -> dict[Timeframe, list[Candle]]:
        series: dict[Timeframe, list[Candle]] = {}
        for tf in dict.fromkeys((timeframe, *ZONE_TIMEFRAMES)):
            series[tf] = await self._feed.fetch_candles(symbol, tf, CANDLE_LIMIT)
        return series

    async def scan_symbol(
        self,
        symbol: str,
        timeframe: Timeframe,
        report: Optional[ScanReport] = None,
    ) -> Optional[int]:
        """Scan one symbol; return the new signal id, if one was opened."""
        report = report or ScanReport(timeframe=timeframe)
        report.scanned += 1

        if self._repo.has_open_signal(symbol):
            logger.debug("Skip %s: signal already open", symbol)
            report.skipped += 1
            return None

        now = self._clock()
        series = await self._fetch_series(symbol, timeframe)
        candles = series[timeframe]
        m15 = series[Timeframe.M15]

        if len(candles) < MIN_HISTORY or any(len(series[tf]) < 15 for tf in ZONE_TIMEFRAMES):
            logger.info("Skip %s %s: not enough history", symbol, timeframe.value)
            report.skipped += 1
            return None

        atrs = AtrSet(
            atr_15m=calculate_atr(m15),
            atr_1h=calculate_atr(series[Timeframe.H1]),
            atr_4h=calculate_atr(series[Timeframe.H4]),
        )
        if atrs.atr_15m <= 0:
            logger.info("Skip %s: dead instrument (zero ATR)", symbol)
            report.skipped += 1
            return None

        zones: list[Zone] = []
        for tf in ZONE_TIMEFRAMES:
            zones.extend(detect_zones(series[tf], tf))
        self._zone_tests.record_touches(symbol, m15[-1].close, zones, atrs.atr_15m, now)

        tf_zones = [z for z in zones if z.timeframe == timeframe]
        candidates = detect_patterns(candles, tf_zones, timeframe, now_ms=now)
        report.candidates += len(candidates)

        for candidate in candidates:
            tests = self._zone_tests.active_zone_test_count(
                symbol, candidate.direction, zones, candidate.entry_price, now,
            )
            profile = calculate_risk_profile(candidate, m15, zones, atrs, tests)

            if profile.is_vetoed:
                report.vetoed += 1
                continue
            if not profile.valid:
                report.rejected += 1
                logger.info(
                    "%s %s %s not taken: %s (rr1=%s, min=%.2f)",
                    symbol, candidate.kind.value, candidate.direction.value,
                    profile.skip_reason.value, profile.rr1, profile.min_rr,
                )
                continue

            signal_id = self._repo.create_signal(build_signal(symbol, candidate, profile, now))
            report.created += 1
            report.signal_ids.append(signal_id)
            logger.info(
                "Opened signal #%d: %s %s %s @ %.8f sl=%.8f tp1=%.8f (%s)",
                signal_id, symbol, candidate.kind.value, candidate.direction.value,
                profile.entry, profile.stop_loss, profile.tp1, profile.scenario.value,
            )
            return signal_id

        return None
