"""Test suite for database session management.

Tests cover:
- Context manager functionality (db_session)
- Exception handling and rollback
- Database initialization errors
- Engine configuration for SQLite
"""

from datetime import date

import pytest
from sqlalchemy import select, text

from duesledger.ledger.domain.models import Member
from duesledger.ledger.domain.money import Money
from duesledger.storage.database import base
from duesledger.storage.database.base import create_db_engine, get_session, init_db
from duesledger.storage.session import db_session

pytestmark = pytest.mark.unit


def _member(name: str = "Test Member") -> Member:
    return Member(name=name, membership_start=date(2024, 1, 1), fee=Money.parse("10.00"))


@pytest.fixture
def initialized_db(monkeypatch):
    """Initialize the module-level engine on an in-memory database."""
    monkeypatch.setattr(base, "engine", None)
    monkeypatch.setattr(base, "SessionLocal", None)
    engine = init_db("sqlite:///:memory:")
    yield engine
    engine.dispose()


# ============================================================================
# db_session Context Manager Tests
# ============================================================================


class TestDbSession:
    """Test synchronous db_session context manager."""

    def test_commit_persists_changes(self, initialized_db):
        """Test that commit persists changes to database."""
        with db_session() as db:
            member = _member()
            db.add(member)
            db.commit()
            member_id = member.id

        with db_session() as db:
            found = db.get(Member, member_id)
            assert found is not None
            assert found.fee == Money.parse("10.00")

    def test_no_commit_doesnt_persist(self, initialized_db):
        """Test that changes without commit are not persisted."""
        with db_session() as db:
            db.add(_member("Uncommitted"))
            db.flush()

        with db_session() as db:
            assert db.execute(select(Member).where(Member.name == "Uncommitted")).first() is None

    def test_exception_triggers_rollback(self, initialized_db):
        """Test that an exception inside the block rolls back and propagates."""
        with pytest.raises(ValueError, match="boom"):
            with db_session() as db:
                db.add(_member("Rolled Back"))
                db.flush()
                raise ValueError("boom")

        with db_session() as db:
            assert db.execute(select(Member).where(Member.name == "Rolled Back")).first() is None

    def test_explicit_factory(self, session_factory):
        """Test that a given factory is used instead of the global one."""
        with db_session(session_factory) as db:
            db.add(_member())
            db.commit()

        with db_session(session_factory) as db:
            assert len(db.execute(select(Member)).all()) == 1

    def test_not_initialized(self, monkeypatch):
        """Test the error when init_db() was never called."""
        monkeypatch.setattr(base, "SessionLocal", None)

        with pytest.raises(RuntimeError, match="Database not initialized"):
            get_session()

        with pytest.raises(RuntimeError, match="Database not initialized"):
            with db_session():
                pass


# ============================================================================
# Engine Configuration Tests
# ============================================================================


class TestEngine:
    def test_sqlite_foreign_keys_enabled(self, db_engine):
        with db_engine.connect() as connection:
            assert connection.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_in_memory_database_is_shared(self, initialized_db):
        """Every session of an in-memory engine sees the same database."""
        with db_session() as db:
            db.add(_member())
            db.commit()

        with db_session() as db:
            assert db.execute(select(Member)).first() is not None

    def test_file_database(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
        try:
            assert engine.pool.__class__.__name__ != "StaticPool"
        finally:
            engine.dispose()
