"""Candle metrics and indicators — ATR, EMA, trend, volume. Pure functions, no I/O."""

import math

from patternscout.strategy.models import (
    Candle,
    CandleMetrics,
    Direction,
    TrendAlignment,
    TrendState,
)

# Body/range ratio above which a candle counts as impulsive.
LARGE_BODY_RATIO = 0.6

# Candles inspected before the signal bar for a sharp move.
SHARP_MOVE_LOOKBACK = 4

# Consecutive impulsive candles that make a sharp move.
SHARP_MOVE_MIN_CANDLES = 3

# EMA spread (relative to EMA200) below which a trend is "weak".
WEAK_TREND_SPREAD = 0.02


def candle_metrics(candle: Candle) -> CandleMetrics:
    """Decompose *candle* into body, range, and wick lengths."""
    return CandleMetrics(
        body=abs(candle.close - candle.open),
        range=candle.high - candle.low,
        upper_wick=candle.high - max(candle.open, candle.close),
        lower_wick=min(candle.open, candle.close) - candle.low,
        is_green=candle.close > candle.open,
        is_red=candle.close < candle.open,
    )


def true_ranges(candles: list[Candle]) -> list[float]:
    """Return the True Range of every candle after the first.

        TR = max(high - low, |high - prev_close|, |low - prev_close|)
    """
    result: list[float] = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        result.append(max(high - low, abs(high - prev_close), abs(low - prev_close)))
    return result


def calculate_atr(candles: list[Candle], period: int = 14) -> float:
    """Calculate the Wilder-smoothed Average True Range.

    The first ATR value is the simple average of the first *period* true
    ranges; every later value is ``(atr × (period - 1) + tr) / period``.

    Raises ``ValueError`` if fewer than ``period + 1`` candles are given.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for ATR({period}), "
            f"got {len(candles)}"
        )

    trs = true_ranges(candles)
    atr = sum(trs[:period]) / period
    for tr in trs[period:]:
        atr = (atr * (period - 1) + tr) / period
    return atr


def average_true_range(candles: list[Candle], period: int = 14) -> float:
    """Return the simple mean of the last *period* true ranges.

    Used as the trailing baseline the current ATR is compared against.
    Falls back to however many true ranges exist when history is short.
    """
    trs = true_ranges(candles)
    if not trs:
        return 0.0
    recent = trs[-period:]
    return sum(recent) / len(recent)


def calculate_ema(candles: list[Candle], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series over closes.

    ``EMA_today = close × k + EMA_yesterday × (1 - k)`` with
    ``k = 2 / (period + 1)``, seeded with the SMA of the first *period*
    closes. Entries before the seed are ``float('nan')``.

    Raises ``ValueError`` if fewer than *period* candles are provided.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for EMA({period}), "
            f"got {len(candles)}"
        )

    k = 2.0 / (period + 1)
    series = [math.nan] * (period - 1)
    ema = sum(c.close for c in candles[:period]) / period
    series.append(ema)
    for c in candles[period:]:
        ema = c.close * k + ema * (1 - k)
        series.append(ema)
    return series


def analyze_trend(candles: list[Candle]) -> TrendState:
    """Read the EMA50/EMA200 stack against the latest close.

    Requires at least 200 candles.
    """
    ema50 = calculate_ema(candles, 50)[-1]
    ema200 = calculate_ema(candles, 200)[-1]
    price = candles[-1].close
    return TrendState(
        price=price,
        ema50=ema50,
        ema200=ema200,
        is_uptrend=price > ema50 > ema200,
        is_downtrend=price < ema50 < ema200,
    )


def is_weak_trend(trend: TrendState, direction: Direction) -> bool:
    """Price on the right side of EMA50 while the EMAs are nearly flat."""
    if trend.ema200 == 0:
        return False
    spread = abs(trend.ema50 - trend.ema200) / trend.ema200
    if direction is Direction.LONG:
        return trend.price > trend.ema50 and spread < WEAK_TREND_SPREAD
    return trend.price < trend.ema50 and spread < WEAK_TREND_SPREAD


def trend_alignment(direction: Direction, trend: TrendState) -> TrendAlignment:
    """Classify *trend* as with, against, or neutral to *direction*."""
    if direction is Direction.LONG:
        if trend.is_uptrend:
            return TrendAlignment.WITH
        if trend.is_downtrend:
            return TrendAlignment.AGAINST
    else:
        if trend.is_downtrend:
            return TrendAlignment.WITH
        if trend.is_uptrend:
            return TrendAlignment.AGAINST
    return TrendAlignment.NEUTRAL


def volume_ratio(candles: list[Candle], period: int = 20) -> float:
    """Current volume divided by the mean of the *period* prior volumes.

    Raises ``ValueError`` when fewer than ``period + 1`` candles are given.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for volume ratio, "
            f"got {len(candles)}"
        )
    prior = candles[-period - 1:-1]
    average = sum(c.volume for c in prior) / period
    current = candles[-1].volume
    if average == 0:
        return math.inf if current > 0 else 0.0
    return current / average


def has_sharp_move_before(candles: list[Candle], direction: Direction) -> bool:
    """Return ``True`` if an impulsive run precedes the signal candle.

    Looks at the candles just before the last one and counts the trailing
    streak of large-body candles moving in *direction*.
    """
    window = candles[-SHARP_MOVE_LOOKBACK - 1:-1]
    streak = 0
    for candle in window:
        m = candle_metrics(candle)
        large = m.range > 0 and m.body / m.range > LARGE_BODY_RATIO
        with_direction = m.is_green if direction is Direction.LONG else m.is_red
        if large and with_direction:
            streak += 1
        else:
            streak = 0
    return streak >= SHARP_MOVE_MIN_CANDLES
