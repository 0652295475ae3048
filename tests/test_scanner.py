"""Tests for patternscout.scanner — detection to signal creation."""

import logging

import pytest

from patternscout.scanner import Scanner, ScanReport
from patternscout.strategy.models import Candle, Direction, PatternKind, Timeframe
from patternscout.strategy.zone_tests import ZoneTestTracker
from patternscout.tracking.models import SignalStatus

NOW = 400 * 900_000


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_candle(o, h, l, c, v=100.0, i=0, step=900_000):
    return Candle(i * step, i * step + step - 1, o, h, l, c, v)


def _flat(count, step=900_000):
    return [_make_candle(100, 100.5, 99.5, 100, i=i, step=step) for i in range(count)]


def _pin_series():
    candles = _flat(319)
    candles.append(_make_candle(100, 101.5, 95, 101, v=300, i=319))
    return candles


class _FakeFeed:
    def __init__(self, m15=None, fail_for=()):
        self.m15 = m15 if m15 is not None else _pin_series()
        self.fail_for = set(fail_for)
        self.calls = []

    async def fetch_candles(self, symbol, interval, limit=350):
        self.calls.append((symbol, interval))
        if symbol in self.fail_for:
            raise RuntimeError("feed down")
        if interval is Timeframe.M15:
            return self.m15
        step = interval.minutes * 60_000
        return _flat(60, step=step)


class _FakeRepo:
    def __init__(self, open_symbols=()):
        self.open_symbols = set(open_symbols)
        self.created = []

    def has_open_signal(self, symbol):
        return symbol in self.open_symbols

    def create_signal(self, signal):
        self.created.append(signal)
        return len(self.created)


def _scanner(feed=None, repo=None, batch_size=20):
    return Scanner(
        feed or _FakeFeed(),
        repo or _FakeRepo(),
        ZoneTestTracker(),
        batch_size=batch_size,
        clock=lambda: NOW,
    )


# ── Tests ────────────────────────────────────────────────────────────────


class TestScanSymbol:
    @pytest.mark.asyncio
    async def test_opens_signal_for_valid_plan(self):
        repo = _FakeRepo()
        report = ScanReport(timeframe=Timeframe.M15)

        signal_id = await _scanner(repo=repo).scan_symbol("BTCUSDT", Timeframe.M15, report)

        assert signal_id == 1
        assert report.candidates == 1
        assert report.created == 1
        signal = repo.created[0]
        assert signal.pattern is PatternKind.PIN_BAR
        assert signal.direction is Direction.LONG
        assert signal.status is SignalStatus.OPEN
        assert signal.entry == pytest.approx(101)
        assert signal.initial_sl == pytest.approx(95 - 0.4 * 19.5 / 14)
        assert signal.current_sl == signal.initial_sl
        assert signal.tp1 == pytest.approx(101 + 1.5 * (101 - signal.initial_sl))
        assert signal.score == 7
        assert signal.created_at == NOW

    @pytest.mark.asyncio
    async def test_skips_symbol_with_open_signal(self):
        feed = _FakeFeed()
        report = ScanReport(timeframe=Timeframe.M15)
        scanner = _scanner(feed=feed, repo=_FakeRepo(open_symbols={"BTCUSDT"}))

        assert await scanner.scan_symbol("BTCUSDT", Timeframe.M15, report) is None
        assert report.skipped == 1
        assert feed.calls == []

    @pytest.mark.asyncio
    async def test_skips_short_history(self, caplog):
        feed = _FakeFeed(m15=_flat(120))
        report = ScanReport(timeframe=Timeframe.M15)

        with caplog.at_level(logging.INFO, logger="patternscout"):
            assert await _scanner(feed=feed).scan_symbol("NEWUSDT", Timeframe.M15, report) is None

        assert report.skipped == 1
        assert "not enough history" in caplog.text

    @pytest.mark.asyncio
    async def test_no_pattern_no_signal(self):
        repo = _FakeRepo()
        report = ScanReport(timeframe=Timeframe.M15)

        await _scanner(feed=_FakeFeed(m15=_flat(320)), repo=repo).scan_symbol(
            "BTCUSDT", Timeframe.M15, report,
        )

        assert report.candidates == 0
        assert repo.created == []

    @pytest.mark.asyncio
    async def test_fetches_every_zone_timeframe_once(self):
        feed = _FakeFeed()
        await _scanner(feed=feed).scan_symbol("BTCUSDT", Timeframe.M15)
        assert feed.calls == [
            ("BTCUSDT", Timeframe.M15),
            ("BTCUSDT", Timeframe.H1),
            ("BTCUSDT", Timeframe.H4),
        ]


class TestScan:
    @pytest.mark.asyncio
    async def test_batches_symbols(self):
        repo = _FakeRepo()
        report = await _scanner(repo=repo, batch_size=2).scan(
            Timeframe.M15, ["AUSDT", "BUSDT", "CUSDT"],
        )
        assert report.scanned == 3
        assert report.created == 3
        assert report.signal_ids == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, caplog):
        feed = _FakeFeed(fail_for={"BADUSDT"})
        repo = _FakeRepo()

        with caplog.at_level(logging.ERROR, logger="patternscout"):
            report = await _scanner(feed=feed, repo=repo).scan(
                Timeframe.M15, ["BADUSDT", "GOODUSDT"],
            )

        assert report.errors == 1
        assert report.created == 1
        assert repo.created[0].symbol == "GOODUSDT"
        assert "BADUSDT" in caplog.text
