"""Signal lifecycle models — tracked positions, price windows, transitions."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from patternscout.strategy.models import Candle, Direction, PatternKind, Timeframe

# Relative gap under which TP2 and TP3 are treated as the same level.
DEGENERATE_TP_TOLERANCE = 0.0001


class SignalStatus(str, Enum):
    OPEN = "OPEN"
    TP1_HIT = "TP1_HIT"
    TP2_HIT = "TP2_HIT"
    TP3_HIT = "TP3_HIT"
    SL_HIT = "SL_HIT"
    BE_HIT = "BE_HIT"  # legacy breakeven exit, accounted like a breakeven stop


class OutcomeType(str, Enum):
    OPEN = "OPEN"
    TP1_HIT = "TP1_HIT"
    TP2_HIT = "TP2_HIT"
    TP3_HIT = "TP3_HIT"
    SL_HIT = "SL_HIT"
    SL_BREAKEVEN = "SL_BREAKEVEN"


@dataclass(frozen=True)
class PartialCloseSplit:
    """Percent of the position closed at TP1 / TP2 / TP3."""

    tp1: float = 50.0
    tp2: float = 30.0
    tp3: float = 20.0

    def __post_init__(self) -> None:
        parts = (self.tp1, self.tp2, self.tp3)
        if any(p < 0 for p in parts) or abs(sum(parts) - 100.0) > 1e-9:
            raise ValueError(
                f"Partial close split must be non-negative and sum to 100, got {parts}"
            )

    def weights(self) -> tuple[float, float, float]:
        """PnL weights of the TP1 / TP2 / TP3 tranches, as fractions.

        The TP2 tranche is everything left after TP1, so a TP2 exit is
        priced the same whether or not a third target exists. The TP3
        tranche is weighted by its own configured share on top.
        """
        return self.tp1 / 100, (100 - self.tp1) / 100, self.tp3 / 100

    def closed_after_tp2(self, has_tp3: bool) -> float:
        """Percent of the position closed once TP2 is hit."""
        return self.tp1 + self.tp2 if has_tp3 else 100.0


DEFAULT_SPLIT = PartialCloseSplit()


@dataclass(frozen=True)
class Signal:
    """A tracked paper position.

    ``initial_sl`` and the targets never change; ``current_sl``,
    ``status``, ``partial_closed`` and ``pnl_percent`` move with price.
    """

    symbol: str
    timeframe: Timeframe
    direction: Direction
    pattern: PatternKind
    entry: float
    initial_sl: float
    current_sl: float
    tp1: float
    tp2: Optional[float]
    tp3: Optional[float]
    status: SignalStatus = SignalStatus.OPEN
    partial_closed: float = 0.0
    pnl_percent: float = 0.0
    score: int = 0
    created_at: int = 0
    updated_at: int = 0
    id: Optional[int] = None

    @property
    def effective_tp3(self) -> Optional[float]:
        return effective_tp3(self.tp2, self.tp3)


@dataclass(frozen=True)
class PriceWindow:
    """High/low extremes seen since the previous check."""

    high: float
    low: float

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise ValueError(
                f"Price window low {self.low} is above high {self.high}"
            )

    @classmethod
    def from_candles(cls, candles: list[Candle]) -> "PriceWindow":
        if not candles:
            raise ValueError("Price window needs at least one candle")
        return cls(
            high=max(c.high for c in candles),
            low=min(c.low for c in candles),
        )

    @classmethod
    def from_price(cls, price: float) -> "PriceWindow":
        return cls(high=price, low=price)


@dataclass(frozen=True)
class TradeOutcome:
    pnl_percent: float
    is_breakeven: bool
    outcome_type: OutcomeType
    description: str


@dataclass(frozen=True)
class Transition:
    """Result of evaluating one price window against a signal."""

    status: SignalStatus
    new_stop: Optional[float]
    partial_closed: float
    outcome: TradeOutcome
    changed: bool


def effective_tp3(tp2: Optional[float], tp3: Optional[float]) -> Optional[float]:
    """Return *tp3*, or ``None`` when it is missing or equal to *tp2*."""
    if tp2 is None or tp3 is None:
        return None
    if abs(tp3 - tp2) <= abs(tp2) * DEGENERATE_TP_TOLERANCE:
        return None
    return tp3


def is_terminal_status(status: SignalStatus, has_tp3: bool) -> bool:
    """Terminal states never transition again."""
    if status in (SignalStatus.TP3_HIT, SignalStatus.SL_HIT, SignalStatus.BE_HIT):
        return True
    if status is SignalStatus.TP2_HIT:
        return not has_tp3
    if status in (SignalStatus.OPEN, SignalStatus.TP1_HIT):
        return False
    raise ValueError(f"Unhandled signal status: {status!r}")
