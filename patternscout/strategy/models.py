"""Strategy data models — candles, zones, and pattern candidates."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Direction(str, Enum):
    """Side of a trade idea."""

    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        return 1 if self is Direction.LONG else -1


class Timeframe(str, Enum):
    """Candle granularities understood by the scanner."""

    M1 = "1m"
    M15 = "15m"
    H1 = "1h"
    H4 = "4h"

    @property
    def minutes(self) -> int:
        return {"1m": 1, "15m": 15, "1h": 60, "4h": 240}[self.value]


# Zone finder and risk calculator only reason about these three.
ZONE_TIMEFRAMES = (Timeframe.M15, Timeframe.H1, Timeframe.H4)


class PatternKind(str, Enum):
    PIN_BAR = "pinbar"
    FAKEY = "fakey"
    PPR = "ppr"
    ENGULFING = "engulfing"


class ZoneType(str, Enum):
    SUPPORT = "support"
    RESISTANCE = "resistance"


class ZoneStrength(str, Enum):
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"

    @classmethod
    def from_touches(cls, touches: int) -> "ZoneStrength":
        """Bucket a touch count: 2 → weak, 3–4 → medium, 5+ → strong."""
        if touches >= 5:
            return cls.STRONG
        if touches >= 3:
            return cls.MEDIUM
        return cls.WEAK


class TrendAlignment(str, Enum):
    WITH = "with"
    NEUTRAL = "neutral"
    AGAINST = "against"


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar. Timestamps are epoch milliseconds."""

    open_time: int
    close_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    def is_closed(self, now_ms: int, buffer_ms: int = 5000) -> bool:
        """Return ``True`` once the bar closed at least *buffer_ms* ago."""
        return self.close_time <= now_ms - buffer_ms


@dataclass(frozen=True)
class CandleMetrics:
    """Body/wick decomposition of one candle."""

    body: float
    range: float
    upper_wick: float
    lower_wick: float
    is_green: bool
    is_red: bool


@dataclass(frozen=True)
class Zone:
    """A support/resistance price band built from clustered swing points."""

    low: float
    high: float
    zone_type: ZoneType
    timeframe: Timeframe
    touches: int
    strength: ZoneStrength

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise ValueError(
                f"Zone low {self.low} is above zone high {self.high}"
            )

    @property
    def mid(self) -> float:
        return (self.low + self.high) / 2

    def contains(self, price: float) -> bool:
        return self.low <= price <= self.high


@dataclass(frozen=True)
class TrendState:
    """EMA50/EMA200 reading against the latest close."""

    price: float
    ema50: float
    ema200: float
    is_uptrend: bool
    is_downtrend: bool


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-factor contributions that make up a candidate's raw score."""

    zone: int
    trend: int
    volume: int
    no_sharp_move: int
    trend_alignment: TrendAlignment
    volume_ratio: float

    @property
    def total(self) -> int:
        return self.zone + self.trend + self.volume + self.no_sharp_move


@dataclass(frozen=True)
class ZoneSnapshot:
    """The zones a candidate was scored against."""

    nearest_support: Optional[Zone]
    nearest_resistance: Optional[Zone]
    support_distance: float = math.inf
    resistance_distance: float = math.inf
    zones: tuple[Zone, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PatternCandidate:
    """A geometrically detected, scored, and admitted pattern."""

    kind: PatternKind
    direction: Direction
    timeframe: Timeframe
    entry_price: float
    raw_score: int
    score: int  # 0–10
    breakdown: ScoreBreakdown
    zone_snapshot: ZoneSnapshot
    candle_time: int
