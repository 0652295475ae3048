"""Candle-shape classification — pin bar, fakey, PPR, engulfing.

Each detector looks only at the last one to three closed candles and
returns the trade direction the shape implies, or ``None``. Geometry
only, apart from the fakey's ATR size filters: zones, trend and volume
are applied later by the detector.
"""

from typing import Callable, Optional

from patternscout.strategy.indicators import average_true_range, candle_metrics
from patternscout.strategy.models import Candle, Direction, PatternKind, Timeframe

# ── Pin bar thresholds ───────────────────────────────────────────────────

# Tail must be at least this multiple of the body and of the opposite wick.
PIN_TAIL_RATIO = 2.0

# Maximum body as a fraction of the full range.
PIN_MAX_BODY_PCT = 0.35

# Close must sit in the outer third of the range on the direction side.
PIN_CLOSE_ZONE = 1.0 / 3.0

# ── Fakey thresholds ─────────────────────────────────────────────────────

FAKEY_ATR_PERIOD = 5

# Per timeframe, in ATR(5): (minimum mother-bar range, minimum probe depth).
FAKEY_ATR_FILTERS = {
    Timeframe.M15: (1.2, 0.225),
    Timeframe.H1: (1.0, 0.175),
    Timeframe.H4: (0.8, 0.125),
}


def _require(candles: list[Candle], count: int, name: str) -> None:
    if len(candles) < count:
        raise ValueError(
            f"{name} needs at least {count} candles, got {len(candles)}"
        )


def detect_pin_bar(candles: list[Candle]) -> Optional[Direction]:
    """Long tail rejecting one side, small body, close near the other end."""
    _require(candles, 1, "Pin bar")
    c = candles[-1]
    m = candle_metrics(c)
    if m.range <= 0 or m.body > PIN_MAX_BODY_PCT * m.range:
        return None

    close_pos = (c.close - c.low) / m.range  # 0 at low, 1 at high

    if (
        m.lower_wick >= PIN_TAIL_RATIO * m.body
        and m.lower_wick >= PIN_TAIL_RATIO * m.upper_wick
        and close_pos >= 1 - PIN_CLOSE_ZONE
    ):
        return Direction.LONG

    if (
        m.upper_wick >= PIN_TAIL_RATIO * m.body
        and m.upper_wick >= PIN_TAIL_RATIO * m.lower_wick
        and close_pos <= PIN_CLOSE_ZONE
    ):
        return Direction.SHORT

    return None


def detect_fakey(
    candles: list[Candle],
    timeframe: Optional[Timeframe] = None,
) -> Optional[Direction]:
    """Mother bar, inside bar, then a false breakout that closes back through.

    With *timeframe* given, the mother bar must span at least its minimum
    ATR(5) multiple and the breakout must probe at least its minimum depth
    beyond the inside bar. Timeframes without their own thresholds use the
    1h ones.
    """
    _require(candles, 3, "Fakey")
    mother, inside, fake = candles[-3], candles[-2], candles[-1]

    if not (inside.high <= mother.high and inside.low >= mother.low):
        return None

    mm, im, fm = candle_metrics(mother), candle_metrics(inside), candle_metrics(fake)

    if (
        mm.is_green and im.is_red and fm.is_green
        and fake.low < inside.low
        and fake.close > inside.high
    ):
        direction, probe = Direction.LONG, inside.low - fake.low
    elif (
        mm.is_red and im.is_green and fm.is_red
        and fake.high > inside.high
        and fake.close < inside.low
    ):
        direction, probe = Direction.SHORT, fake.high - inside.high
    else:
        return None

    if timeframe is None:
        return direction

    min_mother, min_probe = FAKEY_ATR_FILTERS.get(timeframe, FAKEY_ATR_FILTERS[Timeframe.H1])
    atr = average_true_range(candles, FAKEY_ATR_PERIOD)
    if mm.range < min_mother * atr or probe < min_probe * atr:
        return None
    return direction


def detect_ppr(candles: list[Candle]) -> Optional[Direction]:
    """Second candle reverses colour and closes past the first's far extreme."""
    _require(candles, 2, "PPR")
    first, second = candles[-2], candles[-1]
    fm, sm = candle_metrics(first), candle_metrics(second)

    if fm.is_red and sm.is_green and second.close > first.high:
        return Direction.LONG
    if fm.is_green and sm.is_red and second.close < first.low:
        return Direction.SHORT
    return None


def detect_engulfing(candles: list[Candle]) -> Optional[Direction]:
    """Latest candle swallows the prior range and closes through its open."""
    _require(candles, 2, "Engulfing")
    prior, last = candles[-2], candles[-1]

    if not (last.high >= prior.high and last.low <= prior.low):
        return None

    pm, lm = candle_metrics(prior), candle_metrics(last)
    if lm.body < pm.body:
        return None

    if pm.is_red and lm.is_green and last.close > prior.open:
        return Direction.LONG
    if pm.is_green and lm.is_red and last.close < prior.open:
        return Direction.SHORT
    return None


_DETECTORS: dict[PatternKind, Callable[[list[Candle]], Optional[Direction]]] = {
    PatternKind.PIN_BAR: detect_pin_bar,
    PatternKind.FAKEY: detect_fakey,
    PatternKind.PPR: detect_ppr,
    PatternKind.ENGULFING: detect_engulfing,
}


def detect_pattern(
    kind: PatternKind,
    candles: list[Candle],
    timeframe: Optional[Timeframe] = None,
) -> Optional[Direction]:
    """Dispatch to the detector for *kind*.

    *timeframe* enables the fakey's ATR size filters.
    Raises ``ValueError`` for an unknown kind.
    """
    try:
        detector = _DETECTORS[PatternKind(kind)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown pattern kind: {kind!r}") from None
    if detector is detect_fakey:
        return detect_fakey(candles, timeframe)
    return detector(candles)


def detect_shapes(
    candles: list[Candle],
    timeframe: Optional[Timeframe] = None,
) -> list[tuple[PatternKind, Direction]]:
    """Run every detector and return the shapes present on the last candle."""
    found: list[tuple[PatternKind, Direction]] = []
    for kind in _DETECTORS:
        direction = detect_pattern(kind, candles, timeframe)
        if direction is not None:
            found.append((kind, direction))
    return found
