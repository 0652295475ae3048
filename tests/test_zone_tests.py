"""Tests for patternscout.strategy.zone_tests — recent zone touch counting."""

from patternscout.strategy.models import Direction, Timeframe, Zone, ZoneStrength, ZoneType
from patternscout.strategy.zone_tests import (
    DUPLICATE_WINDOW_MS,
    MAX_AGE_MS,
    ZoneTestTracker,
    zone_id,
)

SUPPORT = Zone(99.0, 100.0, ZoneType.SUPPORT, Timeframe.M15, 3, ZoneStrength.MEDIUM)
RESISTANCE = Zone(110.0, 111.0, ZoneType.RESISTANCE, Timeframe.M15, 3, ZoneStrength.MEDIUM)
H1_SUPPORT = Zone(99.0, 100.0, ZoneType.SUPPORT, Timeframe.H1, 3, ZoneStrength.MEDIUM)
ZONES = [SUPPORT, RESISTANCE, H1_SUPPORT]

MINUTE = 60_000


class TestZoneId:
    def test_distinguishes_timeframe(self):
        assert zone_id(SUPPORT) != zone_id(H1_SUPPORT)

    def test_stable(self):
        assert zone_id(SUPPORT) == zone_id(Zone(99.0, 100.0, ZoneType.SUPPORT, Timeframe.M15, 7, ZoneStrength.STRONG))


class TestZoneTestTracker:
    def test_records_touch_within_tolerance(self):
        tracker = ZoneTestTracker()
        # 100.08 is within 0.1 × ATR(1.0) of the support high
        assert tracker.record_touches("BTCUSDT", 100.08, ZONES, 1.0, 0) == 2
        assert tracker.test_count("BTCUSDT", SUPPORT, 0) == 1
        assert tracker.test_count("BTCUSDT", RESISTANCE, 0) == 0

    def test_outside_tolerance_ignored(self):
        tracker = ZoneTestTracker()
        assert tracker.record_touches("BTCUSDT", 100.2, ZONES, 1.0, 0) == 0
        assert len(tracker) == 0

    def test_duplicates_within_window_ignored(self):
        tracker = ZoneTestTracker()
        tracker.record_touches("BTCUSDT", 99.5, [SUPPORT], 1.0, 0)
        tracker.record_touches("BTCUSDT", 99.5, [SUPPORT], 1.0, 5 * MINUTE)
        assert tracker.test_count("BTCUSDT", SUPPORT, 5 * MINUTE) == 1
        tracker.record_touches("BTCUSDT", 99.5, [SUPPORT], 1.0, DUPLICATE_WINDOW_MS + 1)
        assert tracker.test_count("BTCUSDT", SUPPORT, DUPLICATE_WINDOW_MS + 1) == 2

    def test_symbols_are_separate(self):
        tracker = ZoneTestTracker()
        tracker.record_touches("BTCUSDT", 99.5, [SUPPORT], 1.0, 0)
        assert tracker.test_count("ETHUSDT", SUPPORT, 0) == 0

    def test_cleanup_drops_stale_touches(self):
        tracker = ZoneTestTracker()
        tracker.record_touches("BTCUSDT", 99.5, [SUPPORT], 1.0, 0)
        assert tracker.cleanup(MAX_AGE_MS + 1) == 1
        assert len(tracker) == 0

    def test_active_zone_count_prefers_m15(self):
        tracker = ZoneTestTracker()
        for i in range(3):
            tracker.record_touches("BTCUSDT", 99.5, [SUPPORT], 1.0, i * 20 * MINUTE)
        now = 60 * MINUTE
        count = tracker.active_zone_test_count("BTCUSDT", Direction.LONG, ZONES, 100.5, now)
        assert count == 3

    def test_active_zone_count_without_zone(self):
        tracker = ZoneTestTracker()
        assert tracker.active_zone_test_count("BTCUSDT", Direction.SHORT, [SUPPORT], 100.5, 0) == 0
