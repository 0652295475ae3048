"""Dynamic minimum reward:risk — a base bar nudged by trade quality."""

from patternscout.risk.models import MinRRDecision, VolatilityRegime
from patternscout.strategy.models import TrendAlignment

BASE_MIN_RR = 1.2
MIN_RR_FLOOR = 0.8
MIN_RR_CAP = 2.5

# Policy constant: a vetoed plan reports the cap as its minimum R:R.
VETO_MIN_RR = MIN_RR_CAP

HIGH_SCORE = 8
LOW_SCORE = 5
HEAVILY_TESTED = 3


def calculate_min_rr(
    score: int,
    zone_test_count: int,
    alignment: TrendAlignment,
    mtf_aligned: bool,
    regime: VolatilityRegime,
) -> MinRRDecision:
    """Start from 1.2R and apply additive quality adjustments.

    Args:
        score: Pattern admission score on the 0–10 scale.
        zone_test_count: Touches of the active zone in the last 24h.
        alignment: Trend alignment of the trade direction.
        mtf_aligned: A higher-timeframe zone backs the active zone.
        regime: Current volatility regime.

    Returns:
        ``MinRRDecision`` clamped to [0.8, 2.5].
    """
    value = BASE_MIN_RR
    notes: list[str] = []

    def adjust(delta: float, note: str) -> None:
        nonlocal value
        value += delta
        notes.append(f"{note} {delta:+.1f}")

    if score >= HIGH_SCORE:
        adjust(-0.1, "high score")
    elif score <= LOW_SCORE:
        adjust(0.2, "low score")

    if zone_test_count == 0:
        adjust(-0.2, "fresh zone")
    elif zone_test_count >= HEAVILY_TESTED:
        adjust(0.3, "zone tested %dx" % zone_test_count)

    if alignment is TrendAlignment.WITH:
        adjust(-0.1, "with trend")
    elif alignment is TrendAlignment.AGAINST:
        adjust(0.3, "against trend")

    if mtf_aligned:
        adjust(-0.1, "mtf zone alignment")

    if regime is VolatilityRegime.HIGH:
        adjust(0.2, "high volatility")

    value = round(min(MIN_RR_CAP, max(MIN_RR_FLOOR, value)), 2)
    return MinRRDecision(value=value, adjustments=tuple(notes))
