"""Support / Resistance zone detection.

Identifies price bands where swing highs or swing lows cluster, using a
window-based swing-point algorithm followed by relative-tolerance
clustering. Zones are rebuilt from the candle window on every scan.
"""

import math
from typing import Optional

from patternscout.strategy.models import (
    Candle,
    Direction,
    Timeframe,
    Zone,
    ZoneStrength,
    ZoneType,
)

# Minimum candles before zones are attempted.
MIN_ZONE_CANDLES = 50

# Relative distance from the running cluster mean to join a cluster.
CLUSTER_TOLERANCE_PCT = 0.005

# Swing points need at least this many members to form a zone.
MIN_CLUSTER_SIZE = 2


def find_swing_highs(candles: list[Candle], lookback: int = 2) -> list[float]:
    """Return highs strictly greater than *lookback* neighbours on each side."""
    highs: list[float] = []
    for i in range(lookback, len(candles) - lookback):
        h = candles[i].high
        if all(
            candles[i - j].high < h and candles[i + j].high < h
            for j in range(1, lookback + 1)
        ):
            highs.append(h)
    return highs


def find_swing_lows(candles: list[Candle], lookback: int = 2) -> list[float]:
    """Return lows strictly lower than *lookback* neighbours on each side."""
    lows: list[float] = []
    for i in range(lookback, len(candles) - lookback):
        lo = candles[i].low
        if all(
            candles[i - j].low > lo and candles[i + j].low > lo
            for j in range(1, lookback + 1)
        ):
            lows.append(lo)
    return lows


def cluster_levels(
    levels: list[float],
    tolerance_pct: float = CLUSTER_TOLERANCE_PCT,
) -> list[list[float]]:
    """Group sorted price levels whose distance to the cluster mean is small.

    A level joins the current cluster when
    ``|level - mean| / mean <= tolerance_pct``. Clusters with fewer than
    two members are dropped.
    """
    if not levels:
        return []

    ordered = sorted(levels)
    clusters: list[list[float]] = []
    current = [ordered[0]]

    for level in ordered[1:]:
        mean = sum(current) / len(current)
        if mean != 0 and abs(level - mean) / abs(mean) <= tolerance_pct:
            current.append(level)
        else:
            clusters.append(current)
            current = [level]
    clusters.append(current)

    return [c for c in clusters if len(c) >= MIN_CLUSTER_SIZE]


def detect_zones(
    candles: list[Candle],
    timeframe: Timeframe,
    lookback: int = 300,
) -> list[Zone]:
    """Detect support and resistance zones for one timeframe.

    Args:
        candles: Closed candles, oldest first.
        timeframe: The granularity *candles* were sampled at.
        lookback: Number of most-recent candles to scan.

    Returns:
        Zones sorted by ``low``. The type is assigned against the last
        close: a band wholly below it is support, wholly above it is
        resistance, and a band straddling it keeps the type of the swings
        that formed it. Empty with fewer than 50 candles.
    """
    if len(candles) < MIN_ZONE_CANDLES:
        return []

    window = candles[-lookback:]
    price = window[-1].close

    zones: list[Zone] = []
    sources = (
        (find_swing_highs(window), ZoneType.RESISTANCE),
        (find_swing_lows(window), ZoneType.SUPPORT),
    )
    for levels, origin in sources:
        for cluster in cluster_levels(levels):
            low, high = min(cluster), max(cluster)
            if high < price:
                zone_type = ZoneType.SUPPORT
            elif low > price:
                zone_type = ZoneType.RESISTANCE
            else:
                zone_type = origin
            zones.append(
                Zone(
                    low=low,
                    high=high,
                    zone_type=zone_type,
                    timeframe=timeframe,
                    touches=len(cluster),
                    strength=ZoneStrength.from_touches(len(cluster)),
                )
            )

    zones.sort(key=lambda z: z.low)
    return zones


# ── Queries ──────────────────────────────────────────────────────────────


def zone_gap(price: float, zone: Zone) -> float:
    """Absolute distance from *price* to the band (0 inside it)."""
    if zone.contains(price):
        return 0.0
    if price < zone.low:
        return zone.low - price
    return price - zone.high


def distance_to_zone(price: float, zone: Zone) -> float:
    """Distance from *price* to the band, relative to *price*."""
    if price == 0:
        return math.inf
    return zone_gap(price, zone) / abs(price)


def _filter(
    zones: list[Zone],
    min_touches: int,
    timeframe: Optional[Timeframe],
) -> list[Zone]:
    return [
        z for z in zones
        if z.touches >= min_touches and (timeframe is None or z.timeframe == timeframe)
    ]


def nearest_support(
    zones: list[Zone],
    price: float,
    min_touches: int = 1,
    timeframe: Optional[Timeframe] = None,
) -> Optional[Zone]:
    """Return the closest support band at or below *price*."""
    candidates = [
        z for z in _filter(zones, min_touches, timeframe)
        if z.zone_type == ZoneType.SUPPORT and z.low <= price
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda z: zone_gap(price, z))


def nearest_resistance(
    zones: list[Zone],
    price: float,
    min_touches: int = 1,
    timeframe: Optional[Timeframe] = None,
) -> Optional[Zone]:
    """Return the closest resistance band at or above *price*."""
    candidates = [
        z for z in _filter(zones, min_touches, timeframe)
        if z.zone_type == ZoneType.RESISTANCE and z.high >= price
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda z: zone_gap(price, z))


def near_edge(zone: Zone, direction: Direction) -> float:
    """Edge of an opposing zone that price reaches first."""
    return zone.low if direction is Direction.LONG else zone.high


def opposing_zones(
    zones: list[Zone],
    direction: Direction,
    entry: float,
    timeframe: Optional[Timeframe] = None,
) -> list[Zone]:
    """Zones standing in the way of a trade, nearest first.

    For a long these are resistance bands entirely above *entry*; for a
    short, support bands entirely below it. Ties on distance go to the
    lower timeframe.
    """
    order = {tf: i for i, tf in enumerate(Timeframe)}
    if direction is Direction.LONG:
        found = [
            z for z in _filter(zones, 1, timeframe)
            if z.zone_type == ZoneType.RESISTANCE and z.low > entry
        ]
    else:
        found = [
            z for z in _filter(zones, 1, timeframe)
            if z.zone_type == ZoneType.SUPPORT and z.high < entry
        ]
    found.sort(key=lambda z: (abs(near_edge(z, direction) - entry), order[z.timeframe]))
    return found


def opposing_zone_distance(
    zones: list[Zone],
    direction: Direction,
    entry: float,
    timeframe: Optional[Timeframe] = None,
) -> float:
    """Price distance to the nearest opposing zone; ``inf`` if there is none."""
    found = opposing_zones(zones, direction, entry, timeframe)
    if not found:
        return math.inf
    return abs(near_edge(found[0], direction) - entry)


def active_zone(
    zones: list[Zone],
    direction: Direction,
    entry: float,
) -> Optional[Zone]:
    """The zone a trade is taken from.

    Prefers the 15-minute support (long) or resistance (short) nearest to
    *entry*, falling back to any timeframe.
    """
    finder = nearest_support if direction is Direction.LONG else nearest_resistance
    zone = finder(zones, entry, timeframe=Timeframe.M15)
    if zone is None:
        zone = finder(zones, entry)
    return zone
