"""
Pytest configuration and global fixtures.

This module provides shared fixtures used across all tests.
"""

from collections.abc import Generator
from datetime import date

import pytest
from sqlalchemy.orm import Session, sessionmaker

from duesledger.ledger.domain.models import BankTransaction, IdentifierBinding, Member
from duesledger.ledger.domain.money import ZERO, Money
from duesledger.ledger.domain.value_objects import Cursor
from duesledger.ledger.infrastructure.store import SqlAlchemyLedgerStore
from duesledger.storage.database.base import Base, create_db_engine


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()  # Properly close all database connections


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker[Session]:
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """
    Create a database session for testing.

    Each test gets a fresh session with automatic rollback.
    """
    session = session_factory()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def store(session_factory) -> SqlAlchemyLedgerStore:
    """Ledger store over the in-memory test database."""
    return SqlAlchemyLedgerStore(session_factory)


@pytest.fixture
def file_store(tmp_path) -> Generator[SqlAlchemyLedgerStore, None, None]:
    """Ledger store over a SQLite file, for tests running passes in threads."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    yield SqlAlchemyLedgerStore(sessionmaker(bind=engine, autoflush=False, expire_on_commit=False))
    engine.dispose()


@pytest.fixture
def create_member(store):
    """Create members in the test store with sensible defaults."""

    def _create(name: str = "Eris Discordia", **overrides) -> Member:
        values = {
            "membership_start": date(2024, 1, 1),
            "fee": "10.00",
        }
        values.update(overrides)
        return store.create_member(name, **values)

    return _create


# ============================================================================
# Detached entities for pure component tests
# ============================================================================


@pytest.fixture
def build_member():
    """Build a transient Member with every column set."""

    def _build(**overrides) -> Member:
        values = {
            "id": 1,
            "name": "Eris Discordia",
            "email": "",
            "notes": "",
            "membership_start": date(2024, 1, 1),
            "membership_end": None,
            "fee": Money.parse("10.00"),
            "interval": 1,
            "opening_balance": ZERO,
            "account": ZERO,
            "account_calculated_at": None,
            "last_bank_transaction_at": Cursor.START.at,
            "last_bank_transaction_number": Cursor.START.number,
            "version": 0,
        }
        values.update(overrides)
        return Member(**values)

    return _build


@pytest.fixture
def build_transaction():
    """Build a transient BankTransaction."""

    def _build(
        id: int,
        amount: str,
        *,
        on: date = date(2024, 2, 1),
        identifier: str | None = "ident-1",
        description: str = "",
        member_id: int | None = None,
        account_name: str = "",
    ) -> BankTransaction:
        return BankTransaction(
            id=id,
            date=on,
            amount=Money.parse(amount),
            account_identifier=identifier,
            description=description,
            member_id=member_id,
            account_name=account_name,
        )

    return _build


@pytest.fixture
def build_binding():
    """Build a transient IdentifierBinding."""

    def _build(
        member_id: int,
        identifier: str = "ident-1",
        match_subject: str | None = None,
        split_amount: str | None = None,
    ) -> IdentifierBinding:
        return IdentifierBinding(
            member_id=member_id,
            identifier=identifier,
            match_subject=match_subject,
            split_amount=Money.parse(split_amount) if split_amount is not None else None,
        )

    return _build
