"""Tests for the session helpers in app.db."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from app.db import DatabaseManager, build_engine


def test_db_session_commits_and_closes():
    manager = DatabaseManager()
    with manager.db_session() as session:
        assert session.execute(text("select 1")).scalar() == 1
    manager.engine.dispose()


def test_get_db_yields_and_closes():
    manager = DatabaseManager()
    gen = manager.get_db()
    session = next(gen)
    assert session.execute(text("select 1")).scalar() == 1
    with pytest.raises(StopIteration):
        next(gen)
    manager.engine.dispose()


def test_db_session_rolls_back_on_error():
    manager = DatabaseManager()
    session = MagicMock()
    manager._session_factory = MagicMock(return_value=session)
    with pytest.raises(RuntimeError):
        with manager.db_session():
            raise RuntimeError("boom")
    session.rollback.assert_called_once()
    session.commit.assert_not_called()
    session.close.assert_called_once()


def test_in_memory_sqlite_shares_one_connection():
    engine = build_engine("sqlite://")
    assert isinstance(engine.pool, StaticPool)
    engine.dispose()


def test_file_sqlite_uses_a_connection_per_session(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'linedesk.db'}")
    assert not isinstance(engine.pool, StaticPool)
    with engine.connect() as first, engine.connect() as second:
        assert first.connection.dbapi_connection is not second.connection.dbapi_connection
    engine.dispose()
