"""Pattern detector — shape detection, hard gates, and admission scoring.

Orchestrates ``patterns`` (geometry), ``indicators`` (trend, volume,
momentum) and ``sr_zones`` (location) into scored candidates. Pure
function: candles and zones in, admitted candidates out.
"""

import logging
from typing import Optional

from patternscout.strategy.indicators import (
    analyze_trend,
    calculate_atr,
    has_sharp_move_before,
    is_weak_trend,
    trend_alignment,
    volume_ratio,
)
from patternscout.strategy.models import (
    Candle,
    Direction,
    PatternCandidate,
    ScoreBreakdown,
    Timeframe,
    TrendAlignment,
    Zone,
    ZoneSnapshot,
)
from patternscout.strategy.patterns import detect_shapes
from patternscout.strategy.sr_zones import (
    distance_to_zone,
    nearest_resistance,
    nearest_support,
)

logger = logging.getLogger("patternscout")

# ── Detector constants ───────────────────────────────────────────────────

# Candles of history required before any detection is attempted.
MIN_HISTORY = 300

# Trailing window for the volume average.
VOLUME_PERIOD = 20

# Relative distance under which price is "at" a zone.
ZONE_PROXIMITY_PCT = 0.005

# Zones need this many touches to count for location scoring.
MIN_SCORING_TOUCHES = 3

# Raw-score threshold for admission (inclusive).
ADMISSION_THRESHOLD = 130

# Highest attainable raw score, used to map onto the 0–10 scale.
MAX_RAW_SCORE = 180

# ── Score weights ────────────────────────────────────────────────────────

ZONE_SCORE_AT_ZONE = 100
ZONE_SCORE_OPEN = 50
TREND_SCORE_STRONG = 30
TREND_SCORE_WEAK = 15
VOLUME_SCORE_HIGH = 30
VOLUME_SCORE_ABOVE = 15
VOLUME_RATIO_HIGH = 1.5
NO_SHARP_MOVE_SCORE = 20


def is_admitted(raw_score: int) -> bool:
    """Return ``True`` when *raw_score* clears the admission threshold."""
    return raw_score >= ADMISSION_THRESHOLD


def normalize_score(raw_score: int) -> int:
    """Map a raw score onto the 0–10 scale."""
    return max(0, min(10, round(raw_score * 10 / MAX_RAW_SCORE)))


def _zone_snapshot(zones: list[Zone], price: float) -> ZoneSnapshot:
    support = nearest_support(zones, price, min_touches=MIN_SCORING_TOUCHES)
    resistance = nearest_resistance(zones, price, min_touches=MIN_SCORING_TOUCHES)
    return ZoneSnapshot(
        nearest_support=support,
        nearest_resistance=resistance,
        support_distance=distance_to_zone(price, support) if support else float("inf"),
        resistance_distance=(
            distance_to_zone(price, resistance) if resistance else float("inf")
        ),
        zones=tuple(zones),
    )


def _passes_zone_side(direction: Direction, snapshot: ZoneSnapshot) -> bool:
    """Reject a long sitting under resistance (or a short sitting on support)."""
    near_support = snapshot.support_distance < ZONE_PROXIMITY_PCT
    near_resistance = snapshot.resistance_distance < ZONE_PROXIMITY_PCT
    if direction is Direction.LONG:
        return not (near_resistance and not near_support)
    return not (near_support and not near_resistance)


def _zone_score(direction: Direction, snapshot: ZoneSnapshot) -> int:
    if direction is Direction.LONG:
        at_zone = snapshot.support_distance < ZONE_PROXIMITY_PCT
    else:
        at_zone = snapshot.resistance_distance < ZONE_PROXIMITY_PCT
    return ZONE_SCORE_AT_ZONE if at_zone else ZONE_SCORE_OPEN


def _volume_score(ratio: float) -> int:
    if ratio > VOLUME_RATIO_HIGH:
        return VOLUME_SCORE_HIGH
    if ratio > 1.0:
        return VOLUME_SCORE_ABOVE
    return 0


def score_candidate(
    candles: list[Candle],
    direction: Direction,
    snapshot: ZoneSnapshot,
    ratio: float,
) -> ScoreBreakdown:
    """Build the factor breakdown for one detected shape."""
    trend = analyze_trend(candles)
    alignment = trend_alignment(direction, trend)
    if alignment is TrendAlignment.WITH:
        trend_score = TREND_SCORE_STRONG
    elif is_weak_trend(trend, direction):
        trend_score = TREND_SCORE_WEAK
    else:
        trend_score = 0

    return ScoreBreakdown(
        zone=_zone_score(direction, snapshot),
        trend=trend_score,
        volume=_volume_score(ratio),
        no_sharp_move=0 if has_sharp_move_before(candles, direction) else NO_SHARP_MOVE_SCORE,
        trend_alignment=alignment,
        volume_ratio=ratio,
    )


def detect_patterns(
    candles: list[Candle],
    zones: list[Zone],
    timeframe: Timeframe = Timeframe.M15,
    now_ms: Optional[int] = None,
) -> list[PatternCandidate]:
    """Detect, gate, and score patterns on the last closed candle.

    Args:
        candles: Closed candles for one timeframe, oldest first.
        zones: Zones derived from the same candle series.
        timeframe: Granularity of *candles*.
        now_ms: Current time; when given, a last candle that has not
            fully closed makes this a skip.

    Returns:
        Admitted candidates, possibly empty. Insufficient history, a dead
        instrument (zero ATR) and an unclosed last candle are skips.
    """
    if len(candles) < MIN_HISTORY:
        logger.info(
            "Skip %s: %d candles, need %d", timeframe.value, len(candles), MIN_HISTORY,
        )
        return []

    last = candles[-1]
    if now_ms is not None and not last.is_closed(now_ms):
        logger.info("Skip %s: last candle not closed yet", timeframe.value)
        return []

    if calculate_atr(candles) == 0:
        logger.info("Skip %s: zero ATR", timeframe.value)
        return []

    shapes = detect_shapes(candles, timeframe)
    if not shapes:
        return []

    ratio = volume_ratio(candles, VOLUME_PERIOD)
    if ratio <= 1.0:
        logger.debug(
            "Volume gate rejected %d shape(s) on %s (ratio %.2f)",
            len(shapes), timeframe.value, ratio,
        )
        return []

    entry = last.close
    snapshot = _zone_snapshot(zones, entry)

    candidates: list[PatternCandidate] = []
    for kind, direction in shapes:
        if not _passes_zone_side(direction, snapshot):
            logger.debug("%s %s rejected: entry sits at an opposing zone",
                         kind.value, direction.value)
            continue

        breakdown = score_candidate(candles, direction, snapshot, ratio)
        raw = breakdown.total
        if not is_admitted(raw):
            logger.debug("%s %s scored %d, below %d",
                         kind.value, direction.value, raw, ADMISSION_THRESHOLD)
            continue

        candidates.append(
            PatternCandidate(
                kind=kind,
                direction=direction,
                timeframe=timeframe,
                entry_price=entry,
                raw_score=raw,
                score=normalize_score(raw),
                breakdown=breakdown,
                zone_snapshot=snapshot,
                candle_time=last.close_time,
            )
        )

    return candidates
