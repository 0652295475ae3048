"""Signal lifecycle — advance a tracked position against observed prices.

Transitions:
  OPEN    → TP1_HIT → TP2_HIT → TP3_HIT
  OPEN    → TP2_HIT / TP3_HIT   (targets skipped in one fast window)
  OPEN    → SL_HIT              (loss at the original stop)
  TP1_HIT → SL_HIT              (breakeven, stop moved to entry)

A newly reached target always wins over a stop touched in the same window.
"""

from dataclasses import replace
from typing import Optional

from patternscout.strategy.models import Direction
from patternscout.tracking.models import (
    DEFAULT_SPLIT,
    PartialCloseSplit,
    PriceWindow,
    Signal,
    SignalStatus,
    Transition,
    is_terminal_status,
)
from patternscout.tracking.outcomes import calculate_trade_outcome

_PROGRESS = {
    SignalStatus.OPEN: 0,
    SignalStatus.TP1_HIT: 1,
    SignalStatus.TP2_HIT: 2,
}


def _reached(level: Optional[float], window: PriceWindow, direction: Direction) -> bool:
    if level is None:
        return False
    if direction is Direction.LONG:
        return window.high >= level
    return window.low <= level


def _stopped(stop: float, window: PriceWindow, direction: Direction) -> bool:
    if direction is Direction.LONG:
        return window.low <= stop
    return window.high >= stop


def advance_signal(
    signal: Signal,
    window: PriceWindow,
    split: PartialCloseSplit = DEFAULT_SPLIT,
) -> Transition:
    """Evaluate *window* against *signal* and return the resulting transition.

    Idempotent: the same signal and window always give the same result,
    and a terminal signal never changes.

    Args:
        signal: The tracked position as persisted.
        window: High/low extremes observed since the last check.
        split: Partial close percentages.

    Returns:
        ``Transition`` with the new status, a new stop when it moved, the
        banked percentage, and the recomputed outcome.
    """
    tp3 = signal.effective_tp3
    has_tp3 = tp3 is not None
    direction = signal.direction

    status = signal.status
    stop = signal.current_sl
    partial = signal.partial_closed

    if not is_terminal_status(status, has_tp3):
        progress = _PROGRESS[status]
        if has_tp3 and progress < 3 and _reached(tp3, window, direction):
            status, partial = SignalStatus.TP3_HIT, 100.0
        elif progress < 2 and _reached(signal.tp2, window, direction):
            status = SignalStatus.TP2_HIT
            partial = round(split.closed_after_tp2(has_tp3), 6)
            stop = signal.entry
        elif progress < 1 and _reached(signal.tp1, window, direction):
            status = SignalStatus.TP1_HIT
            partial = split.tp1
            stop = signal.entry
        elif _stopped(signal.current_sl, window, direction):
            status = SignalStatus.SL_HIT

    outcome = calculate_trade_outcome(
        status=status,
        direction=direction,
        entry=signal.entry,
        tp1=signal.tp1,
        tp2=signal.tp2,
        initial_sl=signal.initial_sl,
        current_sl=stop,
        tp3=signal.tp3,
        split=split,
    )

    return Transition(
        status=status,
        new_stop=stop if stop != signal.current_sl else None,
        partial_closed=partial,
        outcome=outcome,
        changed=status is not signal.status,
    )


def apply_transition(signal: Signal, transition: Transition, now_ms: int = 0) -> Signal:
    """Return a copy of *signal* with *transition* applied."""
    if not transition.changed:
        return signal
    return replace(
        signal,
        status=transition.status,
        current_sl=(
            transition.new_stop if transition.new_stop is not None else signal.current_sl
        ),
        partial_closed=transition.partial_closed,
        pnl_percent=transition.outcome.pnl_percent,
        updated_at=now_ms or signal.updated_at,
    )
