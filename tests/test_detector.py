"""Tests for patternscout.strategy.detector — gating and admission scoring."""

import logging

import pytest

from patternscout.strategy.detector import (
    ADMISSION_THRESHOLD,
    detect_patterns,
    is_admitted,
    normalize_score,
)
from patternscout.strategy.models import (
    Candle,
    Direction,
    PatternKind,
    Timeframe,
    TrendAlignment,
    Zone,
    ZoneStrength,
    ZoneType,
)


def _make_candle(o, h, l, c, v=100.0, i=0):
    return Candle(i * 900_000, i * 900_000 + 899_999, o, h, l, c, v)


def _base(count=319):
    """Flat dojis: EMAs at 100, ATR 1, no swings."""
    return [_make_candle(100, 100.5, 99.5, 100, i=i) for i in range(count)]


def _bullish_pin_series(volume=300.0, count=319):
    candles = _base(count)
    candles.append(_make_candle(100, 101.5, 95, 101, v=volume, i=count))
    return candles


def _bearish_pin_series(volume=300.0):
    candles = _base()
    candles.append(_make_candle(100, 105, 98.5, 99, v=volume, i=319))
    return candles


def _zone(low, high, zone_type, touches=3):
    return Zone(low, high, zone_type, Timeframe.M15, touches, ZoneStrength.from_touches(touches))


class TestAdmission:
    def test_threshold_is_inclusive(self):
        assert ADMISSION_THRESHOLD == 130
        assert not is_admitted(129)
        assert is_admitted(130)

    def test_normalized_scale(self):
        assert normalize_score(180) == 10
        assert normalize_score(130) == 7
        assert normalize_score(0) == 0


class TestDetectPatterns:
    def test_bullish_pin_without_zone_scores_exactly_threshold(self):
        far_support = _zone(94.8, 95.2, ZoneType.SUPPORT)
        result = detect_patterns(_bullish_pin_series(), [far_support])
        assert len(result) == 1
        cand = result[0]
        assert cand.kind == PatternKind.PIN_BAR
        assert cand.direction == Direction.LONG
        assert cand.entry_price == pytest.approx(101)
        # zone 50 + trend 30 + volume 30 + no sharp move 20
        assert cand.breakdown.zone == 50
        assert cand.breakdown.trend == 30
        assert cand.breakdown.volume == 30
        assert cand.breakdown.no_sharp_move == 20
        assert cand.raw_score == 130
        assert cand.score == 7
        assert cand.breakdown.trend_alignment == TrendAlignment.WITH

    def test_bullish_pin_at_support_scores_full(self):
        support = _zone(100.6, 100.9, ZoneType.SUPPORT)
        result = detect_patterns(_bullish_pin_series(), [support])
        assert result[0].raw_score == 180
        assert result[0].score == 10
        assert result[0].zone_snapshot.nearest_support == support

    def test_long_under_resistance_rejected(self):
        resistance = _zone(101.2, 101.5, ZoneType.RESISTANCE)
        assert detect_patterns(_bullish_pin_series(), [resistance]) == []

    def test_weak_zone_ignored_for_location(self):
        resistance = _zone(101.2, 101.5, ZoneType.RESISTANCE, touches=2)
        assert len(detect_patterns(_bullish_pin_series(), [resistance])) == 1

    def test_bearish_pin(self):
        result = detect_patterns(_bearish_pin_series(), [])
        assert len(result) == 1
        assert result[0].direction == Direction.SHORT
        assert result[0].raw_score == 130

    def test_volume_gate_rejects_everything(self):
        assert detect_patterns(_bullish_pin_series(volume=100.0), []) == []

    def test_moderate_volume_scores_less_and_fails(self):
        # ratio 1.2 → +15 → 115 total
        assert detect_patterns(_bullish_pin_series(volume=120.0), []) == []

    def test_insufficient_history_is_a_skip(self, caplog):
        caplog.set_level(logging.INFO, logger="patternscout")
        assert detect_patterns(_bullish_pin_series(count=200), []) == []
        assert "need 300" in caplog.text

    def test_unclosed_last_candle_is_a_skip(self):
        candles = _bullish_pin_series()
        last = candles[-1]
        assert detect_patterns(candles, [], now_ms=last.close_time + 1000) == []
        assert len(detect_patterns(candles, [], now_ms=last.close_time + 10_000)) == 1

    def test_dead_instrument_is_a_skip(self, caplog):
        caplog.set_level(logging.INFO, logger="patternscout")
        flat = [_make_candle(100, 100, 100, 100, i=i) for i in range(320)]
        assert detect_patterns(flat, []) == []
        assert "zero ATR" in caplog.text

    def test_candidate_carries_timeframe_and_time(self):
        candles = _bullish_pin_series()
        result = detect_patterns(candles, [], timeframe=Timeframe.H1)
        assert result[0].timeframe == Timeframe.H1
        assert result[0].candle_time == candles[-1].close_time
