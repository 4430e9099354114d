"""Tests for ledger database models."""

from datetime import date

import pytest
from sqlalchemy import func, select

from duesledger.ledger.domain.enums import AttributionKind
from duesledger.ledger.domain.models import (
    BankTransaction,
    IdentifierBinding,
    Member,
    TransactionAttribution,
)
from duesledger.ledger.domain.money import Money
from duesledger.ledger.domain.value_objects import Cursor

pytestmark = pytest.mark.integration


def _count(db_session, model) -> int:
    return db_session.execute(select(func.count()).select_from(model)).scalar_one()


class TestMember:
    def test_defaults(self, db_session):
        member = Member(name="Eris", membership_start=date(2024, 1, 1), fee=Money.parse("10.00"))
        db_session.add(member)
        db_session.commit()

        assert member.interval == 1
        assert member.account == Money(0)
        assert member.account_calculated_at is None
        assert member.cursor == Cursor.START
        assert member.version == 0

    def test_money_round_trips_exactly(self, db_session):
        member = Member(
            name="Eris",
            membership_start=date(2024, 1, 1),
            fee=Money.parse("12.34"),
            account=Money.parse("-0.07"),
        )
        db_session.add(member)
        db_session.commit()
        db_session.expire_all()

        loaded = db_session.get(Member, member.id)
        assert loaded.fee == Money.parse("12.34")
        assert loaded.account == Money.parse("-0.07")


class TestCascadeDelete:
    def test_deleting_member_removes_dependants(self, db_session):
        keep = Member(name="Keep", membership_start=date(2024, 1, 1), fee=Money.parse("5.00"))
        gone = Member(name="Gone", membership_start=date(2024, 1, 1), fee=Money.parse("5.00"))
        db_session.add_all([keep, gone])
        db_session.flush()

        explicit = BankTransaction(
            member_id=gone.id, date=date(2024, 2, 1), amount=Money.parse("5.00")
        )
        shared = BankTransaction(
            date=date(2024, 2, 2), account_identifier="shared", amount=Money.parse("10.00")
        )
        db_session.add_all(
            [
                explicit,
                shared,
                IdentifierBinding(member_id=gone.id, identifier="shared"),
                IdentifierBinding(member_id=keep.id, identifier="shared"),
            ]
        )
        db_session.flush()
        db_session.add_all(
            [
                TransactionAttribution(
                    transaction_id=shared.id, member_id=gone.id, amount=Money.parse("5.00"),
                    kind=AttributionKind.SHARE,
                ),
                TransactionAttribution(
                    transaction_id=shared.id, member_id=keep.id, amount=Money.parse("5.00"),
                    kind=AttributionKind.SHARE,
                ),
            ]
        )
        db_session.commit()

        db_session.delete(gone)
        db_session.commit()
        db_session.expire_all()

        # Bank rows matched through a binding belong to nobody and stay
        remaining = db_session.execute(select(BankTransaction.id)).scalars().all()
        assert remaining == [shared.id]
        assert _count(db_session, IdentifierBinding) == 1
        assert db_session.execute(select(TransactionAttribution.member_id)).scalars().all() == [keep.id]
