"""Dynamic risk profile — turns an admitted pattern into a validated trade plan.

Runs in a fixed order: veto filters, stop placement, clearance, hybrid
take-profits, dynamic minimum R:R, validation. Deterministic: the same
inputs always give an identical ``RiskProfile``.
"""

import logging
from typing import Optional

from patternscout.risk.min_rr import VETO_MIN_RR, calculate_min_rr
from patternscout.risk.models import AtrSet, RiskProfile, Scenario
from patternscout.risk.stop_loss import MIN_ZONE_CLEARANCE_ATR, calculate_stop_loss
from patternscout.risk.take_profit import (
    calculate_take_profits,
    clearances,
    r_available,
)
from patternscout.risk.veto import check_veto
from patternscout.strategy.models import (
    Candle,
    PatternCandidate,
    Timeframe,
    Zone,
)
from patternscout.strategy.sr_zones import active_zone

logger = logging.getLogger("patternscout")


def has_mtf_alignment(
    zone: Optional[Zone],
    zones: list[Zone],
    atr_15m: float,
) -> bool:
    """Return ``True`` if a 1h or 4h zone of the same type backs *zone*.

    Backing means the higher-timeframe band overlaps *zone* widened by
    ``0.5 × atr_15m`` on both sides.
    """
    if zone is None:
        return False
    pad = MIN_ZONE_CLEARANCE_ATR * atr_15m
    low, high = zone.low - pad, zone.high + pad
    return any(
        z.timeframe in (Timeframe.H1, Timeframe.H4)
        and z.zone_type == zone.zone_type
        and z.low <= high
        and z.high >= low
        for z in zones
    )


def classify_scenario(
    tp1: Optional[float],
    tp2: Optional[float],
    tp3: Optional[float],
) -> Scenario:
    """Name the plan by how many targets it has room for."""
    if tp1 is None:
        return Scenario.SKIP_NO_SPACE
    if tp2 is None:
        return Scenario.SCALP_1R
    if tp3 is None:
        return Scenario.SWING_2R
    return Scenario.TREND_3R


def _rr(tp: Optional[float], entry: float, risk: float) -> Optional[float]:
    if tp is None:
        return None
    return round(abs(tp - entry) / risk, 4)


def calculate_risk_profile(
    candidate: PatternCandidate,
    candles: list[Candle],
    zones: list[Zone],
    atrs: AtrSet,
    zone_test_count: int,
) -> RiskProfile:
    """Build the stop/target plan for *candidate*.

    Args:
        candidate: An admitted pattern candidate.
        candles: Closed 15-minute candles, oldest first (swing and ATR source).
        zones: Zones from all three timeframes.
        atrs: Current ATR(14) for 15m, 1h and 4h.
        zone_test_count: Tests of the active zone over the last 24 hours.

    Returns:
        A ``RiskProfile``. A vetoed plan has ``veto_reason`` set, no
        targets, and the penalty minimum R:R.

    Raises:
        ValueError: If ``atrs.atr_15m`` is not positive or fewer than five
            candles are given.
    """
    if atrs.atr_15m <= 0:
        raise ValueError(f"atr_15m must be positive, got {atrs.atr_15m}")

    direction = candidate.direction
    entry = candidate.entry_price
    sign = direction.sign

    # 1. Veto
    veto = check_veto(direction, entry, zones, atrs)
    if veto is not None:
        logger.info(
            "Vetoed %s %s at %.8f: %s",
            candidate.kind.value, direction.value, entry, veto.value,
        )
        return RiskProfile(
            direction=direction,
            entry=entry,
            stop_loss=entry - sign * atrs.atr_15m,
            tp1=None,
            tp2=None,
            tp3=None,
            risk=atrs.atr_15m,
            min_rr=VETO_MIN_RR,
            rr1=None,
            rr2=None,
            rr3=None,
            valid=False,
            scenario=Scenario.SKIP_NO_SPACE,
            r_available=0.0,
            clearance_15m=0.0,
            clearance_1h=0.0,
            tp_sources=("none", "none", "none"),
            buffer_atr=0.0,
            regime=None,
            swing_extreme=None,
            min_rr_adjustments=(),
            veto_reason=veto,
        )

    # 2–5. Stop
    zone = active_zone(zones, direction, entry)
    stop = calculate_stop_loss(candles, direction, atrs.atr_15m, zone)
    risk = abs(entry - stop.price)

    # 6. Room
    clearance_15m, clearance_1h = clearances(zones, direction, entry)
    room = r_available(clearance_15m, clearance_1h, risk)

    # 7. Targets
    tps = calculate_take_profits(direction, entry, risk, zones)

    # 8. Minimum R:R
    decision = calculate_min_rr(
        score=candidate.score,
        zone_test_count=zone_test_count,
        alignment=candidate.breakdown.trend_alignment,
        mtf_aligned=has_mtf_alignment(zone, zones, atrs.atr_15m),
        regime=stop.regime,
    )

    # 9. Validation
    rr1 = _rr(tps.tp1, entry, risk)
    valid = rr1 is not None and rr1 >= decision.value
    scenario = classify_scenario(tps.tp1, tps.tp2, tps.tp3)

    logger.debug(
        "%s %s: sl=%.8f R=%.8f tp=%s/%s/%s min_rr=%.2f valid=%s (%s)",
        candidate.kind.value, direction.value, stop.price, risk,
        tps.tp1, tps.tp2, tps.tp3, decision.value, valid, scenario.value,
    )

    return RiskProfile(
        direction=direction,
        entry=entry,
        stop_loss=stop.price,
        tp1=tps.tp1,
        tp2=tps.tp2,
        tp3=tps.tp3,
        risk=risk,
        min_rr=decision.value,
        rr1=rr1,
        rr2=_rr(tps.tp2, entry, risk),
        rr3=_rr(tps.tp3, entry, risk),
        valid=valid,
        scenario=scenario,
        r_available=room,
        clearance_15m=clearance_15m,
        clearance_1h=clearance_1h,
        tp_sources=tps.sources,
        buffer_atr=stop.buffer_atr,
        regime=stop.regime,
        swing_extreme=stop.swing_extreme,
        min_rr_adjustments=decision.adjustments,
    )
