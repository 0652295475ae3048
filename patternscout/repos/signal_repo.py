"""Signal repository — SQLite CRUD for the signals table."""

import sqlite3
from typing import Optional

from patternscout.repos.db import get_connection
from patternscout.strategy.models import Direction, PatternKind, Timeframe
from patternscout.tracking.models import Signal, SignalStatus, effective_tp3

# Statuses that may still transition (TP2_HIT only while a TP3 exists).
_OPEN_STATUSES = (SignalStatus.OPEN.value, SignalStatus.TP1_HIT.value, SignalStatus.TP2_HIT.value)

_COLUMNS = """
    id, symbol, timeframe, direction, pattern, score, entry_price,
    initial_sl, current_sl, tp1, tp2, tp3, status, partial_closed,
    pnl_percent, created_at, updated_at
"""


def _row_to_signal(row: sqlite3.Row) -> Signal:
    return Signal(
        id=row["id"],
        symbol=row["symbol"],
        timeframe=Timeframe(row["timeframe"]),
        direction=Direction(row["direction"]),
        pattern=PatternKind(row["pattern"]),
        score=row["score"],
        entry=row["entry_price"],
        initial_sl=row["initial_sl"],
        current_sl=row["current_sl"],
        tp1=row["tp1"],
        tp2=row["tp2"],
        tp3=row["tp3"],
        status=SignalStatus(row["status"]),
        partial_closed=row["partial_closed"],
        pnl_percent=row["pnl_percent"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SignalRepo:
    """Data access layer for tracked signals.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def create_signal(self, signal: Signal) -> int:
        """Insert *signal* and return its ``id``."""
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO signals
                    (symbol, timeframe, direction, pattern, score, entry_price,
                     initial_sl, current_sl, tp1, tp2, tp3, status,
                     partial_closed, pnl_percent, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    signal.symbol, signal.timeframe.value, signal.direction.value,
                    signal.pattern.value, signal.score, signal.entry,
                    signal.initial_sl, signal.current_sl, signal.tp1, signal.tp2,
                    signal.tp3, signal.status.value, signal.partial_closed,
                    signal.pnl_percent, signal.created_at, signal.updated_at,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def update_signal(
        self,
        signal_id: int,
        status: SignalStatus,
        current_sl: float,
        partial_closed: float,
        pnl_percent: float,
        updated_at: int,
    ) -> None:
        """Persist the mutable lifecycle fields of one signal."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                UPDATE signals
                SET status = ?, current_sl = ?, partial_closed = ?,
                    pnl_percent = ?, updated_at = ?
                WHERE id = ?
                """,
                (status.value, current_sl, partial_closed, pnl_percent,
                 updated_at, signal_id),
            )
            conn.commit()
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_signal(self, signal_id: int) -> Optional[Signal]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM signals WHERE id = ?", (signal_id,)
            ).fetchone()
            return _row_to_signal(row) if row else None
        finally:
            conn.close()

    def get_open_signals(self) -> list[Signal]:
        """Return signals that can still transition, oldest first."""
        placeholders = ", ".join("?" for _ in _OPEN_STATUSES)
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM signals WHERE status IN ({placeholders}) "
                "ORDER BY id ASC",
                _OPEN_STATUSES,
            ).fetchall()
        finally:
            conn.close()

        signals = [_row_to_signal(r) for r in rows]
        return [
            s for s in signals
            if s.status is not SignalStatus.TP2_HIT or effective_tp3(s.tp2, s.tp3) is not None
        ]

    def has_open_signal(self, symbol: str) -> bool:
        return any(s.symbol == symbol for s in self.get_open_signals())

    def list_signals(
        self,
        limit: Optional[int] = None,
        status: Optional[SignalStatus] = None,
    ) -> list[Signal]:
        """Return signals newest first, optionally filtered by status."""
        query = f"SELECT {_COLUMNS} FROM signals"
        params: list = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(query, params).fetchall()
            return [_row_to_signal(r) for r in rows]
        finally:
            conn.close()
