"""Internal API routers — read-only /signals and /stats endpoints.

No business logic. Delegates to the signal repo and the stats module.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from patternscout.tracking.models import DEFAULT_SPLIT, PartialCloseSplit, Signal, SignalStatus
from patternscout.tracking.outcomes import format_pnl, signal_outcome
from patternscout.tracking.stats import summarize_signals

logger = logging.getLogger("patternscout")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_signal_repo = None  # Set via configure_routers()
_split: PartialCloseSplit = DEFAULT_SPLIT


def configure_routers(signal_repo, split: Optional[PartialCloseSplit] = None) -> None:
    """Inject dependencies from the application startup.

    Args:
        signal_repo: A ``SignalRepo`` instance (or duck-type for tests).
        split: Partial close percentages used for PnL recomputation.
    """
    global _signal_repo, _split  # noqa: PLW0603
    _signal_repo = signal_repo
    _split = split or DEFAULT_SPLIT


def _serialize(signal: Signal) -> dict:
    data = asdict(signal)
    for key in ("timeframe", "direction", "pattern", "status"):
        data[key] = data[key].value
    outcome = signal_outcome(signal, _split)
    data["pnl_percent"] = round(outcome.pnl_percent, 4)
    data["pnl"] = format_pnl(outcome.pnl_percent)
    data["is_breakeven"] = outcome.is_breakeven
    data["outcome"] = outcome.outcome_type.value
    return data


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/signals")
async def get_signals(
    limit: int = Query(default=50, ge=1, le=500),
    status: Optional[str] = Query(default=None),
):
    """Return recent signals, newest first."""
    if _signal_repo is None:
        return {"signals": []}
    status_filter = None
    if status is not None:
        try:
            status_filter = SignalStatus(status.upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown status: {status}") from None
    signals = _signal_repo.list_signals(limit=limit, status=status_filter)
    return {"signals": [_serialize(s) for s in signals]}


@router.get("/signals/open")
async def get_open_signals():
    """Return signals that are still being tracked."""
    if _signal_repo is None:
        return {"signals": []}
    return {"signals": [_serialize(s) for s in _signal_repo.get_open_signals()]}


@router.get("/stats")
async def get_stats():
    """Return aggregate performance across all signals."""
    signals = _signal_repo.list_signals() if _signal_repo is not None else []
    return summarize_signals(signals, _split)
