"""Tests for engine and session handling (fx_kernel/db/engine.py)."""

import pytest
from sqlalchemy import text

from fx_config.schema import DatabaseSettings
from fx_kernel.db.engine import (
    get_engine,
    get_session,
    init_engine_from_settings,
    reset_engine,
    session_scope,
)


@pytest.fixture
def sqlite_engine():
    engine = init_engine_from_settings(DatabaseSettings(url="sqlite://"))
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE scratch (n INTEGER)"))
    yield engine
    reset_engine()


class TestEngineLifecycle:

    def test_requires_initialization(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()

    def test_in_memory_database_shared_across_sessions(self, sqlite_engine):
        with session_scope() as s:
            s.execute(text("INSERT INTO scratch (n) VALUES (1)"))
        with session_scope() as s:
            assert s.execute(text("SELECT count(*) FROM scratch")).scalar_one() == 1

    def test_scope_rolls_back_on_error(self, sqlite_engine):
        with pytest.raises(ValueError):
            with session_scope() as s:
                s.execute(text("INSERT INTO scratch (n) VALUES (2)"))
                raise ValueError("boom")
        with session_scope() as s:
            assert s.execute(text("SELECT count(*) FROM scratch")).scalar_one() == 0
