"""Veto filters — reject a trade whose path is blocked by a nearby zone."""

from typing import Optional

from patternscout.risk.models import AtrSet, VetoReason
from patternscout.strategy.models import Direction, Timeframe, Zone
from patternscout.strategy.sr_zones import opposing_zone_distance

# Opposing 1h zone closer than this many ATR(1h) vetoes the trade.
H1_VETO_ATR = 0.7

# Opposing 15m zone closer than this many ATR(15m) vetoes the trade.
M15_VETO_ATR = 1.0


def check_veto(
    direction: Direction,
    entry: float,
    zones: list[Zone],
    atrs: AtrSet,
) -> Optional[VetoReason]:
    """Return the veto reason, or ``None`` when the path is clear.

    The 1-hour zone is checked first; the 15-minute zone only when the
    1-hour one did not veto.
    """
    long = direction is Direction.LONG

    h1_distance = opposing_zone_distance(zones, direction, entry, Timeframe.H1)
    if h1_distance < H1_VETO_ATR * atrs.atr_1h:
        return VetoReason.H1_RES_TOO_CLOSE if long else VetoReason.H1_SUP_TOO_CLOSE

    m15_distance = opposing_zone_distance(zones, direction, entry, Timeframe.M15)
    if m15_distance < M15_VETO_ATR * atrs.atr_15m:
        return VetoReason.M15_RES_TOO_CLOSE if long else VetoReason.M15_SUP_TOO_CLOSE

    return None
