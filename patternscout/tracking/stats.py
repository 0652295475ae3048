"""Signal statistics — pure aggregation over persisted signals.

PnL is recomputed from stored prices for every signal, so the figures
always follow the current outcome rules.
"""

from patternscout.tracking.models import (
    DEFAULT_SPLIT,
    OutcomeType,
    PartialCloseSplit,
    Signal,
    SignalStatus,
    is_terminal_status,
)
from patternscout.tracking.outcomes import signal_outcome


def _bucket() -> dict:
    return {"total": 0, "closed": 0, "wins": 0, "losses": 0, "pnl_net": 0.0}


def summarize_signals(
    signals: list[Signal],
    split: PartialCloseSplit = DEFAULT_SPLIT,
) -> dict:
    """Compute summary statistics across *signals*.

    Returns:
        Dict with ``total``, ``open``, ``closed``, ``by_status``,
        ``wins``, ``losses``, ``breakeven_stops``, ``win_rate``,
        ``pnl_positive``, ``pnl_negative``, ``pnl_net`` and per-pattern,
        per-timeframe and per-direction breakdowns.
    """
    by_status = {s.value: 0 for s in SignalStatus}
    by_pattern: dict[str, dict] = {}
    by_timeframe: dict[str, dict] = {}
    by_direction: dict[str, dict] = {}

    open_count = 0
    wins = 0
    losses = 0
    breakeven_stops = 0
    pnl_positive = 0.0
    pnl_negative = 0.0

    for signal in signals:
        by_status[signal.status.value] += 1
        outcome = signal_outcome(signal, split)
        pnl = outcome.pnl_percent
        closed = is_terminal_status(signal.status, signal.effective_tp3 is not None)

        if not closed:
            open_count += 1
        if pnl > 0:
            pnl_positive += pnl
        elif pnl < 0:
            pnl_negative += pnl
        if closed and pnl > 0:
            wins += 1
        elif closed and pnl < 0:
            losses += 1
        if outcome.outcome_type is OutcomeType.SL_BREAKEVEN:
            breakeven_stops += 1

        for key, table in (
            (signal.pattern.value, by_pattern),
            (signal.timeframe.value, by_timeframe),
            (signal.direction.value, by_direction),
        ):
            bucket = table.setdefault(key, _bucket())
            bucket["total"] += 1
            bucket["pnl_net"] += pnl
            if closed:
                bucket["closed"] += 1
                if pnl > 0:
                    bucket["wins"] += 1
                elif pnl < 0:
                    bucket["losses"] += 1

    closed_count = len(signals) - open_count
    for table in (by_pattern, by_timeframe, by_direction):
        for bucket in table.values():
            bucket["pnl_net"] = round(bucket["pnl_net"], 4)

    return {
        "total": len(signals),
        "open": open_count,
        "closed": closed_count,
        "by_status": by_status,
        "wins": wins,
        "losses": losses,
        "breakeven_stops": breakeven_stops,
        "win_rate": round(wins / closed_count, 4) if closed_count else 0.0,
        "pnl_positive": round(pnl_positive, 4),
        "pnl_negative": round(pnl_negative, 4),
        "pnl_net": round(pnl_positive + pnl_negative, 4),
        "by_pattern": by_pattern,
        "by_timeframe": by_timeframe,
        "by_direction": by_direction,
    }
