"""Repository implementations for dues ledger entities.

Provides data access abstraction following the Repository pattern. Repositories
work on a caller-owned session and never commit; the store decides transaction
boundaries.
"""

from collections.abc import Iterable
from datetime import date

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.orm import Session, aliased, joinedload

from ..domain.money import ZERO, Money
from ..domain.models import BankTransaction, IdentifierBinding, Member, TransactionAttribution
from ..domain.value_objects import Cursor


class MemberRepository:
    """Repository for Member entities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, member_id: int) -> Member | None:
        return self.session.get(Member, member_id)

    def find_all(self) -> list[Member]:
        """Find all members ordered by id."""
        stmt = select(Member).order_by(Member.id)
        return list(self.session.execute(stmt).scalars())

    def find_ids(self) -> list[int]:
        stmt = select(Member.id).order_by(Member.id)
        return list(self.session.execute(stmt).scalars())

    def add(self, member: Member) -> Member:
        self.session.add(member)
        self.session.flush()
        return member


class BindingRepository:
    """Repository for IdentifierBinding entities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, member_id: int, identifier: str) -> IdentifierBinding | None:
        return self.session.get(IdentifierBinding, (member_id, identifier))

    def find_by_member(self, member_id: int) -> list[IdentifierBinding]:
        """Find all bindings of a member."""
        stmt = (
            select(IdentifierBinding)
            .where(IdentifierBinding.member_id == member_id)
            .order_by(IdentifierBinding.identifier)
        )
        return list(self.session.execute(stmt).scalars())

    def find_by_identifiers(self, identifiers: Iterable[str]) -> list[IdentifierBinding]:
        """Find the bindings of every member for the given identifiers."""
        wanted = sorted(set(identifiers))
        if not wanted:
            return []
        stmt = (
            select(IdentifierBinding)
            .where(IdentifierBinding.identifier.in_(wanted))
            .order_by(IdentifierBinding.identifier, IdentifierBinding.member_id)
        )
        return list(self.session.execute(stmt).scalars())

    def add(self, binding: IdentifierBinding) -> IdentifierBinding:
        self.session.add(binding)
        self.session.flush()
        return binding


class TransactionRepository:
    """Repository for BankTransaction entities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, transaction_id: int) -> BankTransaction | None:
        return self.session.get(BankTransaction, transaction_id)

    def find_pending(
        self, member_id: int, cursor: Cursor, identifiers: Iterable[str]
    ) -> list[BankTransaction]:
        """Find transactions after ``cursor`` that concern a member.

        A transaction concerns the member when it is explicitly attributed to
        it or carries one of its bound identifiers. Transactions re-booked by a
        manual resolution row are left out.
        """
        concerns = BankTransaction.member_id == member_id
        wanted = sorted(set(identifiers))
        if wanted:
            concerns = or_(concerns, BankTransaction.account_identifier.in_(wanted))

        stmt = (
            select(BankTransaction)
            .where(
                concerns,
                or_(
                    BankTransaction.date > cursor.at,
                    and_(BankTransaction.date == cursor.at, BankTransaction.id > cursor.number),
                ),
                ~self._is_resolved(),
            )
            .order_by(BankTransaction.date, BankTransaction.id)
        )
        return list(self.session.execute(stmt).scalars())

    def find_unattributed(self, since: date | None = None) -> list[BankTransaction]:
        """Find transactions without explicit member that nobody holds.

        Leaves out transactions re-booked by a resolution row and those some
        member's pass already attributed.
        """
        stmt = select(BankTransaction).where(
            BankTransaction.member_id.is_(None),
            ~self._is_resolved(),
            ~exists().where(TransactionAttribution.transaction_id == BankTransaction.id),
        )
        if since is not None:
            stmt = stmt.where(BankTransaction.date >= since)
        stmt = stmt.order_by(BankTransaction.date, BankTransaction.id)
        return list(self.session.execute(stmt).scalars())

    def is_resolved(self, transaction_id: int) -> bool:
        stmt = select(BankTransaction.id).where(
            BankTransaction.resolves_transaction_id == transaction_id
        )
        return self.session.execute(stmt).first() is not None

    def add_all(self, transactions: list[BankTransaction]) -> list[BankTransaction]:
        self.session.add_all(transactions)
        self.session.flush()
        return transactions

    @staticmethod
    def _is_resolved():
        resolution = aliased(BankTransaction)
        return exists().where(resolution.resolves_transaction_id == BankTransaction.id)


class AttributionRepository:
    """Repository for TransactionAttribution entities."""

    def __init__(self, session: Session):
        self.session = session

    def find_by_member(self, member_id: int) -> list[TransactionAttribution]:
        """Find a member's attributions with their transactions, in fold order."""
        stmt = (
            select(TransactionAttribution)
            .join(TransactionAttribution.transaction)
            .options(joinedload(TransactionAttribution.transaction))
            .where(TransactionAttribution.member_id == member_id)
            .order_by(BankTransaction.date, BankTransaction.id)
        )
        return list(self.session.execute(stmt).scalars())

    def totals_by_transaction(self, transaction_ids: Iterable[int]) -> dict[int, Money]:
        """Sum the attributed amounts of each given transaction that has any."""
        wanted = sorted(set(transaction_ids))
        if not wanted:
            return {}
        stmt = select(TransactionAttribution).where(TransactionAttribution.transaction_id.in_(wanted))
        totals: dict[int, Money] = {}
        for row in self.session.execute(stmt).scalars():
            totals[row.transaction_id] = totals.get(row.transaction_id, ZERO) + row.amount
        return totals

    def add_all(self, attributions: list[TransactionAttribution]) -> None:
        self.session.add_all(attributions)
