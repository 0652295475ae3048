"""Tests for patternscout.repos — schema bootstrap and signal persistence."""

import sqlite3
from dataclasses import replace

import pytest

from patternscout.repos.db import get_connection, init_db
from patternscout.repos.signal_repo import SignalRepo
from patternscout.strategy.models import Direction, PatternKind, Timeframe
from patternscout.tracking.models import Signal, SignalStatus


# ── Fixtures ─────────────────────────────────────────────────────────────


@pytest.fixture
def tmp_db(tmp_path):
    db_path = str(tmp_path / "data" / "signals.db")
    init_db(db_path)
    return db_path


@pytest.fixture
def repo(tmp_db):
    return SignalRepo(tmp_db)


def _signal(symbol="BTCUSDT", status=SignalStatus.OPEN, tp3=None, created_at=1_000):
    return Signal(
        symbol=symbol,
        timeframe=Timeframe.M15,
        direction=Direction.LONG,
        pattern=PatternKind.FAKEY,
        entry=100.0,
        initial_sl=95.0,
        current_sl=95.0,
        tp1=105.0,
        tp2=110.0,
        tp3=tp3,
        status=status,
        score=8,
        created_at=created_at,
        updated_at=created_at,
    )


# ── DB initialisation ───────────────────────────────────────────────────


class TestInitDb:
    def test_creates_signals_table(self, tmp_db):
        conn = get_connection(tmp_db)
        try:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='signals'"
            ).fetchone()
        finally:
            conn.close()
        assert row is not None

    def test_idempotent(self, tmp_db, repo):
        repo.create_signal(_signal())
        init_db(tmp_db)
        assert len(repo.list_signals()) == 1


# ── Signal repo ─────────────────────────────────────────────────────────


class TestSignalRepo:
    def test_round_trip(self, repo):
        signal_id = repo.create_signal(_signal(tp3=120.0))
        stored = repo.get_signal(signal_id)
        assert stored.id == signal_id
        assert stored.direction is Direction.LONG
        assert stored.pattern is PatternKind.FAKEY
        assert stored.timeframe is Timeframe.M15
        assert stored.tp3 == 120.0
        assert stored.score == 8

    def test_missing_signal(self, repo):
        assert repo.get_signal(999) is None

    def test_update_keeps_initial_stop(self, repo):
        signal_id = repo.create_signal(_signal())
        repo.update_signal(signal_id, SignalStatus.TP1_HIT, 100.0, 50.0, 2.5, 2_000)
        stored = repo.get_signal(signal_id)
        assert stored.status is SignalStatus.TP1_HIT
        assert stored.current_sl == 100.0
        assert stored.initial_sl == 95.0
        assert stored.partial_closed == 50.0
        assert stored.pnl_percent == 2.5
        assert stored.updated_at == 2_000

    def test_open_signals(self, repo):
        repo.create_signal(_signal("AUSDT"))
        repo.create_signal(_signal("BUSDT", status=SignalStatus.TP1_HIT))
        repo.create_signal(_signal("CUSDT", status=SignalStatus.TP2_HIT))
        repo.create_signal(_signal("DUSDT", status=SignalStatus.TP2_HIT, tp3=120.0))
        repo.create_signal(_signal("EUSDT", status=SignalStatus.SL_HIT))

        symbols = [s.symbol for s in repo.get_open_signals()]
        assert symbols == ["AUSDT", "BUSDT", "DUSDT"]
        assert repo.has_open_signal("DUSDT")
        assert not repo.has_open_signal("CUSDT")
        assert not repo.has_open_signal("EUSDT")

    def test_list_newest_first(self, repo):
        for i in range(3):
            repo.create_signal(_signal(f"S{i}USDT"))
        listed = repo.list_signals(limit=2)
        assert [s.symbol for s in listed] == ["S2USDT", "S1USDT"]

    def test_list_by_status(self, repo):
        repo.create_signal(_signal("AUSDT"))
        repo.create_signal(_signal("BUSDT", status=SignalStatus.SL_HIT))
        listed = repo.list_signals(status=SignalStatus.SL_HIT)
        assert [s.symbol for s in listed] == ["BUSDT"]

    def test_partial_closed_check_constraint(self, repo):
        with pytest.raises(sqlite3.IntegrityError):
            repo.create_signal(replace(_signal(), partial_closed=150.0))
