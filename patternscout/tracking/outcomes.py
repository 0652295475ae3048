"""Trade outcome accounting — PnL recomputed from persisted prices.

Every figure here is derived from the stored entry, stops, targets and
status, never accumulated, so a formula change applies to history too.

Rules:
  - A full loss is measured against the *original* stop.
  - The *current* stop is only used to detect a breakeven exit.
  - A breakeven exit keeps only the TP1 tranche.
"""

from typing import Optional

from patternscout.strategy.models import Direction
from patternscout.tracking.models import (
    DEFAULT_SPLIT,
    OutcomeType,
    PartialCloseSplit,
    Signal,
    SignalStatus,
    TradeOutcome,
    effective_tp3,
)

# Relative distance from entry within which a stop counts as breakeven.
BREAKEVEN_TOLERANCE = 0.0001


def is_breakeven_sl(current_sl: float, entry: float) -> bool:
    """Return ``True`` iff ``|current_sl - entry| < entry × 0.0001``."""
    return abs(current_sl - entry) < abs(entry) * BREAKEVEN_TOLERANCE


def price_move_pct(price: float, entry: float, direction: Direction) -> float:
    """Signed percent move from *entry* to *price* in the trade's favour."""
    return direction.sign * (price - entry) / entry * 100


def _require(level: Optional[float], name: str, status: SignalStatus) -> float:
    if level is None:
        raise ValueError(f"{status.value} outcome needs {name}, got None")
    return level


def calculate_trade_outcome(
    status: SignalStatus,
    direction: Direction,
    entry: float,
    tp1: Optional[float],
    tp2: Optional[float],
    initial_sl: float,
    current_sl: float,
    tp3: Optional[float] = None,
    split: PartialCloseSplit = DEFAULT_SPLIT,
) -> TradeOutcome:
    """Compute PnL (percent of entry) for a signal in *status*.

    A pure function of the persisted fields: for every status except
    ``TP3_HIT`` the result depends only on status, direction, entry,
    tp1, tp2 and the two stops. ``tp3`` is read only to price a TP3 exit.

    Args:
        status: Persisted lifecycle status.
        direction: Trade direction.
        entry: Entry price.
        tp1, tp2, tp3: Persisted targets (``tp3`` may be absent).
        initial_sl: Stop the plan was opened with.
        current_sl: Stop after any breakeven move.
        split: Partial close percentages.

    Returns:
        ``TradeOutcome`` with pnl, breakeven flag, type and description.
    """
    w1, w2, w3 = split.weights()

    def tranche(level: Optional[float], name: str, weight: float) -> float:
        return price_move_pct(_require(level, name, status), entry, direction) * weight

    if status is SignalStatus.OPEN:
        return TradeOutcome(0.0, False, OutcomeType.OPEN, "Position open")

    if status is SignalStatus.TP1_HIT:
        pnl = tranche(tp1, "tp1", w1)
        return TradeOutcome(
            pnl, False, OutcomeType.TP1_HIT,
            f"TP1 hit, {split.tp1:g}% closed, stop at breakeven",
        )

    if status is SignalStatus.TP2_HIT:
        pnl = tranche(tp1, "tp1", w1) + tranche(tp2, "tp2", w2)
        return TradeOutcome(pnl, False, OutcomeType.TP2_HIT, "TP2 hit")

    if status is SignalStatus.TP3_HIT:
        pnl = (
            tranche(tp1, "tp1", w1)
            + tranche(tp2, "tp2", w2)
            + tranche(effective_tp3(tp2, tp3), "tp3", w3)
        )
        return TradeOutcome(pnl, False, OutcomeType.TP3_HIT, "TP3 hit, fully closed")

    if status in (SignalStatus.SL_HIT, SignalStatus.BE_HIT):
        if status is SignalStatus.BE_HIT or is_breakeven_sl(current_sl, entry):
            pnl = tranche(tp1, "tp1", w1)
            return TradeOutcome(
                pnl, True, OutcomeType.SL_BREAKEVEN,
                "Stopped at breakeven after partial profit",
            )
        pnl = price_move_pct(initial_sl, entry, direction)
        return TradeOutcome(pnl, False, OutcomeType.SL_HIT, "Stop loss hit")

    raise ValueError(f"Unhandled signal status: {status!r}")


def signal_outcome(signal: Signal, split: PartialCloseSplit = DEFAULT_SPLIT) -> TradeOutcome:
    """Shortcut for :func:`calculate_trade_outcome` over a stored ``Signal``."""
    return calculate_trade_outcome(
        status=signal.status,
        direction=signal.direction,
        entry=signal.entry,
        tp1=signal.tp1,
        tp2=signal.tp2,
        initial_sl=signal.initial_sl,
        current_sl=signal.current_sl,
        tp3=signal.tp3,
        split=split,
    )


def format_pnl(pnl: float) -> str:
    """Format a percent PnL with an explicit sign, e.g. ``+2.50%``."""
    sign = "+" if pnl >= 0 else ""
    return f"{sign}{pnl:.2f}%"
