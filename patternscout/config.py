"""PatternScout — application configuration.

Loads .env variables into a typed config object.
Validates values on startup.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from patternscout.strategy.models import ZONE_TIMEFRAMES, Timeframe
from patternscout.tracking.models import PartialCloseSplit


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    binance_base_url: str = "https://fapi.binance.com"
    scan_timeframes: tuple[Timeframe, ...] = ZONE_TIMEFRAMES
    scan_batch_size: int = 20
    min_quote_volume: float = 10_000_000.0
    request_weight_limit: int = 1200
    track_interval_seconds: int = 60
    partial_close_split: PartialCloseSplit = field(default_factory=PartialCloseSplit)
    db_path: str = "data/patternscout.db"
    log_level: str = "INFO"
    api_port: int = 8080


def _parse_timeframes(raw: str) -> tuple[Timeframe, ...]:
    try:
        frames = tuple(Timeframe(part.strip()) for part in raw.split(",") if part.strip())
    except ValueError:
        raise ValueError(f"SCAN_TIMEFRAMES has an unknown timeframe: {raw!r}") from None
    if not frames or any(tf not in ZONE_TIMEFRAMES for tf in frames):
        raise ValueError(
            f"SCAN_TIMEFRAMES must be a subset of 15m,1h,4h, got {raw!r}"
        )
    return frames


def _parse_split(raw: str) -> PartialCloseSplit:
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 3:
        raise ValueError(f"PARTIAL_CLOSE_SPLIT needs three values, got {raw!r}")
    try:
        return PartialCloseSplit(*(float(p) for p in parts))
    except ValueError as exc:
        raise ValueError(f"PARTIAL_CLOSE_SPLIT is invalid: {exc}") from None


def _positive_int(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable
    when a value cannot be parsed.
    """
    load_dotenv(dotenv_path=env_path)

    try:
        min_quote_volume = float(os.environ.get("MIN_QUOTE_VOLUME", "10000000"))
    except ValueError:
        raise ValueError("MIN_QUOTE_VOLUME must be a number") from None

    return Config(
        binance_base_url=os.environ.get("BINANCE_BASE_URL", "https://fapi.binance.com"),
        scan_timeframes=_parse_timeframes(os.environ.get("SCAN_TIMEFRAMES", "15m,1h,4h")),
        scan_batch_size=_positive_int("SCAN_BATCH_SIZE", "20"),
        min_quote_volume=min_quote_volume,
        request_weight_limit=_positive_int("REQUEST_WEIGHT_LIMIT", "1200"),
        track_interval_seconds=_positive_int("TRACK_INTERVAL_SECONDS", "60"),
        partial_close_split=_parse_split(os.environ.get("PARTIAL_CLOSE_SPLIT", "50,30,20")),
        db_path=os.environ.get("DB_PATH", "data/patternscout.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_positive_int("API_PORT", "8080"),
    )
