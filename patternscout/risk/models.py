"""Risk data models — the trade plan produced for an admitted pattern."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from patternscout.strategy.models import Direction


class VetoReason(str, Enum):
    H1_RES_TOO_CLOSE = "h1_res_too_close"
    H1_SUP_TOO_CLOSE = "h1_sup_too_close"
    M15_RES_TOO_CLOSE = "m15_res_too_close"
    M15_SUP_TOO_CLOSE = "m15_sup_too_close"


class Scenario(str, Enum):
    SKIP_NO_SPACE = "skip_no_space"
    SCALP_1R = "scalp_1R"
    SWING_2R = "swing_2R"
    TREND_3R = "trend_3R"


class VolatilityRegime(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class SkipReason(str, Enum):
    """Why a computed plan was not turned into a signal."""

    VETOED = "vetoed"
    NO_SPACE = "no_space"
    RR_BELOW_DYNAMIC_MIN = "rr_below_dynamic_min"


@dataclass(frozen=True)
class AtrSet:
    """ATR readings for the three zone timeframes."""

    atr_15m: float
    atr_1h: float
    atr_4h: float


@dataclass(frozen=True)
class StopLossResult:
    """Final stop plus how it was reached."""

    price: float
    swing_extreme: float
    buffer_atr: float
    regime: VolatilityRegime
    round_number_adjusted: bool
    zone_clearance_adjusted: bool


@dataclass(frozen=True)
class TakeProfitResult:
    """Up to three targets; ``None`` means no room for that target."""

    tp1: Optional[float]
    tp2: Optional[float]
    tp3: Optional[float]
    sources: tuple[str, str, str]  # "fixed", "zone", or "none" per target


@dataclass(frozen=True)
class MinRRDecision:
    """Dynamic minimum reward:risk and the adjustments that built it."""

    value: float
    adjustments: tuple[str, ...]


@dataclass(frozen=True)
class RiskProfile:
    """Stop, targets, and validation verdict for one candidate.

    A vetoed profile carries ``veto_reason``, no targets, and the
    penalty minimum R:R.
    """

    direction: Direction
    entry: float
    stop_loss: float
    tp1: Optional[float]
    tp2: Optional[float]
    tp3: Optional[float]
    risk: float  # R, |entry - stop|
    min_rr: float
    rr1: Optional[float]
    rr2: Optional[float]
    rr3: Optional[float]
    valid: bool
    scenario: Scenario
    r_available: float
    clearance_15m: float
    clearance_1h: float
    tp_sources: tuple[str, str, str]
    buffer_atr: float
    regime: Optional[VolatilityRegime]
    swing_extreme: Optional[float]
    min_rr_adjustments: tuple[str, ...]
    veto_reason: Optional[VetoReason] = None

    @property
    def is_vetoed(self) -> bool:
        return self.veto_reason is not None

    @property
    def skip_reason(self) -> Optional[SkipReason]:
        """Return why the plan is unusable, or ``None`` when it is valid."""
        if self.is_vetoed:
            return SkipReason.VETOED
        if self.tp1 is None:
            return SkipReason.NO_SPACE
        if not self.valid:
            return SkipReason.RR_BELOW_DYNAMIC_MIN
        return None
