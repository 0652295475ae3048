"""Stop-loss placement — swing anchor, adaptive buffer, round numbers, zone clearance.

Every step moves the stop only further away from entry, never closer.
"""

import logging
from typing import Optional

from patternscout.risk.models import StopLossResult, VolatilityRegime
from patternscout.strategy.indicators import average_true_range
from patternscout.strategy.models import Candle, Direction, Zone

logger = logging.getLogger("patternscout")

# Candles scanned for the swing extreme.
SWING_LOOKBACK = 5

# Period of the trailing average ATR used for the volatility regime.
AVG_ATR_PERIOD = 14

# ATR ratio boundaries between low / normal / high volatility.
LOW_VOL_RATIO = 0.8
HIGH_VOL_RATIO = 1.5

# Buffer beyond the swing extreme, in ATR, per volatility regime.
REGIME_BUFFER_ATR = {
    VolatilityRegime.LOW: 0.3,
    VolatilityRegime.NORMAL: 0.4,
    VolatilityRegime.HIGH: 0.5,
}

# Stops within this fraction of a round level get pushed past it.
ROUND_PROXIMITY_PCT = 0.005

# Extra push, in ATR, away from a round level.
ROUND_PUSH_ATR = 0.1

# Minimum distance, in ATR(15m), between stop and the active zone boundary.
MIN_ZONE_CLEARANCE_ATR = 0.5


def swing_extreme(candles: list[Candle], direction: Direction) -> float:
    """Lowest low (long) or highest high (short) of the last 5 closed candles.

    Raises ``ValueError`` with fewer than 5 candles.
    """
    if len(candles) < SWING_LOOKBACK:
        raise ValueError(
            f"Need at least {SWING_LOOKBACK} candles for swing extreme, "
            f"got {len(candles)}"
        )
    recent = candles[-SWING_LOOKBACK:]
    if direction is Direction.LONG:
        return min(c.low for c in recent)
    return max(c.high for c in recent)


def volatility_regime(current_atr: float, average_atr: float) -> VolatilityRegime:
    """Classify *current_atr* against its trailing average."""
    if average_atr <= 0:
        return VolatilityRegime.NORMAL
    ratio = current_atr / average_atr
    if ratio < LOW_VOL_RATIO:
        return VolatilityRegime.LOW
    if ratio > HIGH_VOL_RATIO:
        return VolatilityRegime.HIGH
    return VolatilityRegime.NORMAL


def round_number_step(price: float) -> float:
    """Granularity of "round" levels for a price of this magnitude."""
    p = abs(price)
    if p < 10:
        return 1.0
    if p < 100:
        return 5.0
    if p < 1000:
        return 10.0
    if p < 10000:
        return 50.0
    return 100.0


def repel_round_number(sl: float, direction: Direction, atr: float) -> tuple[float, bool]:
    """Push *sl* past a nearby round level by ``0.1 × atr``.

    Returns the (possibly adjusted) stop and whether it moved.
    """
    step = round_number_step(sl)
    nearest = round(sl / step) * step
    if abs(sl - nearest) <= abs(sl) * ROUND_PROXIMITY_PCT:
        push = ROUND_PUSH_ATR * atr
        return (sl - push if direction is Direction.LONG else sl + push), True
    return sl, False


def enforce_zone_clearance(
    sl: float,
    direction: Direction,
    zone: Optional[Zone],
    atr_15m: float,
) -> tuple[float, bool]:
    """Keep *sl* at least ``0.5 × atr_15m`` beyond the active zone boundary.

    The boundary is the zone's low for a long and its high for a short.
    Returns the stop and whether it had to be pushed.
    """
    if zone is None:
        return sl, False
    clearance = MIN_ZONE_CLEARANCE_ATR * atr_15m
    if direction is Direction.LONG:
        required = zone.low - clearance
        if sl > required:
            return required, True
    else:
        required = zone.high + clearance
        if sl < required:
            return required, True
    return sl, False


def calculate_stop_loss(
    candles: list[Candle],
    direction: Direction,
    atr_15m: float,
    zone: Optional[Zone],
) -> StopLossResult:
    """Place the stop for a trade taken from *zone*.

    Args:
        candles: Closed 15-minute candles, oldest first.
        direction: Trade direction.
        atr_15m: Current ATR(14) on 15m.
        zone: The active zone being traded from, if any.

    Returns:
        ``StopLossResult`` with the final stop and the steps that shaped it.
    """
    extreme = swing_extreme(candles, direction)
    regime = volatility_regime(atr_15m, average_true_range(candles, AVG_ATR_PERIOD))
    buffer_atr = REGIME_BUFFER_ATR[regime]

    buffer = buffer_atr * atr_15m
    sl = extreme - buffer if direction is Direction.LONG else extreme + buffer

    sl, rounded = repel_round_number(sl, direction, atr_15m)
    sl, cleared = enforce_zone_clearance(sl, direction, zone, atr_15m)

    if rounded or cleared:
        logger.debug(
            "Stop adjusted (round=%s, zone=%s) → %.8f", rounded, cleared, sl,
        )

    return StopLossResult(
        price=sl,
        swing_extreme=extreme,
        buffer_atr=buffer_atr,
        regime=regime,
        round_number_adjusted=rounded,
        zone_clearance_adjusted=cleared,
    )
