"""Take-profit targets — fixed reward multiples capped by opposing zones."""

import math
from typing import Optional

from patternscout.risk.models import TakeProfitResult
from patternscout.strategy.models import Direction, Timeframe, Zone
from patternscout.strategy.sr_zones import (
    near_edge,
    opposing_zone_distance,
    opposing_zones,
)

# Fixed reward multiples for TP1 / TP2 / TP3.
TP_R_MULTIPLES = (1.5, 2.5, 4.0)

# Zone targets are pulled this fraction of the way back toward entry.
ZONE_PULLBACK_PCT = 0.05

# Zones farther than this many R are ignored as targets.
MAX_ZONE_TARGET_R = 10.0

# TP1 must be at least this many R from entry.
MIN_TP1_R = 0.5

# Share of the clearance usable as reward when sizing R_available.
CLEARANCE_USABLE_PCT = 0.9


def clearances(
    zones: list[Zone],
    direction: Direction,
    entry: float,
) -> tuple[float, float]:
    """Distance to the nearest opposing zone on 15m and on 1h (``inf`` if none)."""
    return (
        opposing_zone_distance(zones, direction, entry, Timeframe.M15),
        opposing_zone_distance(zones, direction, entry, Timeframe.H1),
    )


def r_available(clearance_15m: float, clearance_1h: float, risk: float) -> float:
    """Room to the nearest opposing zone in R, floored to one decimal."""
    room = min(clearance_15m, clearance_1h)
    if math.isinf(room):
        return math.inf
    return math.floor(CLEARANCE_USABLE_PCT * room / risk * 10) / 10


def _distinct_targets(
    zones: list[Zone],
    direction: Direction,
    entry: float,
) -> list[Zone]:
    """Opposing zones nearest first, skipping bands overlapping a closer one."""
    picked: list[Zone] = []
    for zone in opposing_zones(zones, direction, entry):
        edge = near_edge(zone, direction)
        if any(p.contains(edge) for p in picked):
            continue
        picked.append(zone)
    return picked


def _beyond(a: float, b: float, direction: Direction) -> bool:
    """Return ``True`` if *a* is strictly further in *direction* than *b*."""
    return a > b if direction is Direction.LONG else a < b


def calculate_take_profits(
    direction: Direction,
    entry: float,
    risk: float,
    zones: list[Zone],
) -> TakeProfitResult:
    """Compute TP1–TP3 for a trade with risk distance *risk*.

    Each target is the closer of its fixed multiple (1.5R, 2.5R, 4.0R)
    and the matching opposing zone's near edge pulled 5% toward entry.
    TP1 closer than 0.5R is dropped; a target that does not move strictly
    beyond the previous one is dropped along with every later target.
    """
    sign = direction.sign
    targets = _distinct_targets(zones, direction, entry)

    tps: list[Optional[float]] = []
    sources: list[str] = []
    for i, multiple in enumerate(TP_R_MULTIPLES):
        fixed = entry + sign * multiple * risk
        tp, source = fixed, "fixed"

        if i < len(targets):
            level = near_edge(targets[i], direction)
            if abs(level - entry) <= MAX_ZONE_TARGET_R * risk:
                adjusted = entry + (level - entry) * (1 - ZONE_PULLBACK_PCT)
                if abs(adjusted - entry) < abs(fixed - entry):
                    tp, source = adjusted, "zone"

        if i == 0 and abs(tp - entry) < MIN_TP1_R * risk:
            tp, source = None, "none"
        elif i > 0 and (tps[-1] is None or not _beyond(tp, tps[-1], direction)):
            tp, source = None, "none"

        tps.append(tp)
        sources.append(source)

    return TakeProfitResult(
        tp1=tps[0],
        tp2=tps[1],
        tp3=tps[2],
        sources=(sources[0], sources[1], sources[2]),
    )
