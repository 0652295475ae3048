"""Tests for patternscout.tracking.lifecycle — signal state transitions."""

import pytest

from patternscout.strategy.models import Candle, Direction, PatternKind, Timeframe
from patternscout.tracking.lifecycle import advance_signal, apply_transition
from patternscout.tracking.models import PriceWindow, Signal, SignalStatus


def _signal(**overrides):
    fields = dict(
        symbol="BTCUSDT",
        timeframe=Timeframe.M15,
        direction=Direction.LONG,
        pattern=PatternKind.PIN_BAR,
        entry=100.0,
        initial_sl=95.0,
        current_sl=95.0,
        tp1=105.0,
        tp2=110.0,
        tp3=None,
        id=1,
    )
    fields.update(overrides)
    return Signal(**fields)


def _short(**overrides):
    fields = dict(
        direction=Direction.SHORT,
        initial_sl=105.0,
        current_sl=105.0,
        tp1=95.0,
        tp2=90.0,
    )
    fields.update(overrides)
    return _signal(**fields)


class TestEndToEnd:
    def test_tp1_moves_stop_to_entry(self):
        t = advance_signal(_signal(), PriceWindow(high=106, low=101))
        assert t.changed
        assert t.status is SignalStatus.TP1_HIT
        assert t.new_stop == 100.0
        assert t.partial_closed == 50.0
        assert t.outcome.pnl_percent == pytest.approx(2.5)

    def test_breakeven_stop_after_tp1(self):
        s = _signal(status=SignalStatus.TP1_HIT, current_sl=100.0, partial_closed=50.0)
        t = advance_signal(s, PriceWindow(high=101, low=99))
        assert t.status is SignalStatus.SL_HIT
        assert t.outcome.is_breakeven
        assert t.outcome.pnl_percent == pytest.approx(2.5)
        assert t.new_stop is None
        assert t.partial_closed == 50.0

    def test_full_loss_on_original_stop(self):
        t = advance_signal(_signal(), PriceWindow(high=100, low=94))
        assert t.status is SignalStatus.SL_HIT
        assert not t.outcome.is_breakeven
        assert t.outcome.pnl_percent == pytest.approx(-5.0)


class TestTransitionRules:
    def test_no_change_inside_range(self):
        t = advance_signal(_signal(), PriceWindow(high=103, low=97))
        assert not t.changed
        assert t.status is SignalStatus.OPEN
        assert t.new_stop is None

    def test_target_wins_over_stop_in_same_window(self):
        t = advance_signal(_signal(), PriceWindow(high=106, low=94))
        assert t.status is SignalStatus.TP1_HIT

    def test_fast_move_skips_to_tp2(self):
        t = advance_signal(_signal(), PriceWindow(high=111, low=100))
        assert t.status is SignalStatus.TP2_HIT
        assert t.partial_closed == 100.0
        assert t.outcome.pnl_percent == pytest.approx(7.5)

    def test_tp2_terminal_without_tp3(self):
        s = _signal(status=SignalStatus.TP2_HIT, current_sl=100.0, partial_closed=100.0)
        t = advance_signal(s, PriceWindow(high=130, low=50))
        assert not t.changed

    def test_terminal_states_never_move(self):
        for status in (SignalStatus.SL_HIT, SignalStatus.TP3_HIT, SignalStatus.BE_HIT):
            s = _signal(status=status, current_sl=100.0, tp3=120.0, partial_closed=50.0)
            assert not advance_signal(s, PriceWindow(high=200, low=1)).changed

    def test_idempotent(self):
        s, w = _signal(), PriceWindow(high=106, low=99)
        assert advance_signal(s, w) == advance_signal(s, w)

    def test_short_tp1(self):
        t = advance_signal(_short(), PriceWindow(high=99, low=94))
        assert t.status is SignalStatus.TP1_HIT
        assert t.new_stop == 100.0
        assert t.outcome.pnl_percent == pytest.approx(2.5)

    def test_short_stop(self):
        t = advance_signal(_short(), PriceWindow(high=106, low=99))
        assert t.status is SignalStatus.SL_HIT
        assert t.outcome.pnl_percent == pytest.approx(-5.0)


class TestThreeTargets:
    def test_path_through_all_targets(self):
        s = _signal(tp3=120.0)

        t1 = advance_signal(s, PriceWindow(high=106, low=100))
        s = apply_transition(s, t1, now_ms=1)
        assert s.status is SignalStatus.TP1_HIT
        assert s.partial_closed == 50.0

        t2 = advance_signal(s, PriceWindow(high=111, low=101))
        s = apply_transition(s, t2, now_ms=2)
        assert s.status is SignalStatus.TP2_HIT
        assert s.partial_closed == 80.0
        assert s.pnl_percent == pytest.approx(7.5)

        t3 = advance_signal(s, PriceWindow(high=121, low=111))
        s = apply_transition(s, t3, now_ms=3)
        assert s.status is SignalStatus.TP3_HIT
        assert s.partial_closed == 100.0
        assert s.pnl_percent == pytest.approx(11.5)
        assert s.updated_at == 3

    def test_breakeven_after_tp2_keeps_tp1_tranche(self):
        s = _signal(tp3=120.0, status=SignalStatus.TP2_HIT, current_sl=100.0, partial_closed=80.0)
        t = advance_signal(s, PriceWindow(high=105, low=99.5))
        assert t.status is SignalStatus.SL_HIT
        assert t.outcome.pnl_percent == pytest.approx(2.5)

    def test_degenerate_tp3_treated_as_absent(self):
        s = _signal(tp3=110.005, status=SignalStatus.TP2_HIT, current_sl=100.0, partial_closed=100.0)
        assert not advance_signal(s, PriceWindow(high=130, low=50)).changed


class TestApplyTransition:
    def test_unchanged_returns_same_signal(self):
        s = _signal()
        t = advance_signal(s, PriceWindow(high=101, low=99))
        assert apply_transition(s, t, now_ms=5) is s

    def test_initial_stop_is_preserved(self):
        s = _signal()
        s = apply_transition(s, advance_signal(s, PriceWindow(high=106, low=100)), now_ms=5)
        assert s.initial_sl == 95.0
        assert s.current_sl == 100.0
        assert s.pnl_percent == pytest.approx(2.5)


class TestPriceWindow:
    def test_low_above_high(self):
        with pytest.raises(ValueError):
            PriceWindow(high=99, low=100)

    def test_from_candles(self):
        candles = [
            Candle(0, 59_999, 100, 102, 99, 101, 1),
            Candle(60_000, 119_999, 101, 103, 98, 100, 1),
        ]
        w = PriceWindow.from_candles(candles)
        assert (w.high, w.low) == (103, 98)

    def test_from_no_candles(self):
        with pytest.raises(ValueError):
            PriceWindow.from_candles([])

    def test_from_price(self):
        assert PriceWindow.from_price(100) == PriceWindow(100, 100)
