"""Ledger store: the transactional boundary of the reconciliation engine.

:class:`LedgerStore` is the protocol the services depend on;
:class:`SqlAlchemyLedgerStore` implements it on SQLAlchemy sessions. Every
method runs in its own session, and returned entities are detached with their
columns loaded.

The only write to a member's balance and cursor is :meth:`commit_member`, a
compare-and-swap on the state the plan was computed from.
"""

from collections.abc import Callable, Generator, Iterable
from contextlib import contextmanager
from datetime import date
from typing import Any, Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import (
    ConcurrentModification,
    DatabaseIntegrityError,
    InvalidAmount,
    InvalidInterval,
    RecordNotFoundError,
    wrap_exception,
)
from ...storage.session import db_session
from ...utils.logging import get_logger
from ..domain.money import ZERO, Money
from ..domain.models import BankTransaction, IdentifierBinding, Member, TransactionAttribution
from ..domain.value_objects import Cursor, ReconciliationPlan, exceeds_amount
from .repository import (
    AttributionRepository,
    BindingRepository,
    MemberRepository,
    TransactionRepository,
)

logger = get_logger(__name__)


class LedgerStore(Protocol):
    """Operations the reconciliation and review services need from storage."""

    def get_member(self, member_id: int) -> Member: ...

    def member_ids(self) -> list[int]: ...

    def bindings_for_member(self, member_id: int) -> list[IdentifierBinding]: ...

    def bindings_for_identifiers(self, identifiers: Iterable[str]) -> list[IdentifierBinding]: ...

    def pending_transactions(
        self, member_id: int, cursor: Cursor, identifiers: Iterable[str]
    ) -> list[BankTransaction]: ...

    def attributed_totals(self, transaction_ids: Iterable[int]) -> dict[int, Money]: ...

    def commit_member(self, plan: ReconciliationPlan) -> None: ...


class SqlAlchemyLedgerStore:
    """SQLAlchemy implementation of :class:`LedgerStore`.

    Args:
        session_factory: Callable returning a new Session; defaults to the
            factory configured by ``init_db()``
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self.session_factory = session_factory

    @contextmanager
    def unit_of_work(self) -> Generator[Session, None, None]:
        """Session scope; rolled back on error, closed on exit."""
        with db_session(self.session_factory) as db:
            yield db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_member(self, member_id: int) -> Member:
        """Load a member.

        Raises:
            RecordNotFoundError: If the member does not exist
        """
        with self.unit_of_work() as db:
            member = MemberRepository(db).get(member_id)
        if member is None:
            raise RecordNotFoundError(
                f"Member {member_id} not found", entity_type="Member", entity_id=member_id
            )
        return member

    def member_ids(self) -> list[int]:
        with self.unit_of_work() as db:
            return MemberRepository(db).find_ids()

    def list_members(self) -> list[Member]:
        with self.unit_of_work() as db:
            return MemberRepository(db).find_all()

    def bindings_for_member(self, member_id: int) -> list[IdentifierBinding]:
        with self.unit_of_work() as db:
            return BindingRepository(db).find_by_member(member_id)

    def bindings_for_identifiers(self, identifiers: Iterable[str]) -> list[IdentifierBinding]:
        with self.unit_of_work() as db:
            return BindingRepository(db).find_by_identifiers(identifiers)

    def pending_transactions(
        self, member_id: int, cursor: Cursor, identifiers: Iterable[str]
    ) -> list[BankTransaction]:
        """Transactions after ``cursor`` concerning the member, ordered by ``(date, id)``."""
        with self.unit_of_work() as db:
            return TransactionRepository(db).find_pending(member_id, cursor, identifiers)

    def get_transaction(self, transaction_id: int) -> BankTransaction:
        """Load a transaction.

        Raises:
            RecordNotFoundError: If the transaction does not exist
        """
        with self.unit_of_work() as db:
            transaction = TransactionRepository(db).get(transaction_id)
        if transaction is None:
            raise RecordNotFoundError(
                f"Transaction {transaction_id} not found",
                entity_type="BankTransaction",
                entity_id=transaction_id,
            )
        return transaction

    def unattributed_transactions(self, since: date | None = None) -> list[BankTransaction]:
        """Transactions without explicit member that were not manually re-booked."""
        with self.unit_of_work() as db:
            return TransactionRepository(db).find_unattributed(since)

    def is_resolved(self, transaction_id: int) -> bool:
        with self.unit_of_work() as db:
            return TransactionRepository(db).is_resolved(transaction_id)

    def attributions_for_member(self, member_id: int) -> list[TransactionAttribution]:
        with self.unit_of_work() as db:
            return AttributionRepository(db).find_by_member(member_id)

    def attributed_totals(self, transaction_ids: Iterable[int]) -> dict[int, Money]:
        """Amount already attributed per transaction id; unattributed ids are absent."""
        with self.unit_of_work() as db:
            return AttributionRepository(db).totals_by_transaction(transaction_ids)

    # ------------------------------------------------------------------
    # Guarded commit
    # ------------------------------------------------------------------

    def commit_member(self, plan: ReconciliationPlan) -> None:
        """Apply a reconciliation plan atomically.

        Updates balance, ``account_calculated_at`` and cursor only if the member
        still has the version, cursor and calculation date the plan was
        computed from, and records the plan's attributions in the same
        transaction. A transaction's attributions never add up to more than
        its amount.

        Raises:
            ConcurrentModification: If the member changed (or vanished) since it
                was read, or another pass attributed one of the plan's
                transactions in the meantime
        """
        if plan.previous_calculated_at is None:
            calculated_guard = Member.account_calculated_at.is_(None)
        else:
            calculated_guard = Member.account_calculated_at == plan.previous_calculated_at

        stmt = (
            update(Member)
            .where(
                Member.id == plan.member_id,
                Member.version == plan.previous_version,
                Member.last_bank_transaction_at == plan.previous_cursor.at,
                Member.last_bank_transaction_number == plan.previous_cursor.number,
                calculated_guard,
            )
            .values(
                account=plan.new_account,
                account_calculated_at=plan.new_calculated_at,
                last_bank_transaction_at=plan.new_cursor.at,
                last_bank_transaction_number=plan.new_cursor.number,
                version=Member.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        with self.unit_of_work() as db:
            result = db.execute(stmt)
            if result.rowcount != 1:
                db.rollback()
                raise ConcurrentModification(
                    f"Member {plan.member_id} was modified by another pass",
                    member_id=plan.member_id,
                    expected_cursor=str(plan.previous_cursor),
                )

            rows = self._attribution_rows(plan)
            attributions = AttributionRepository(db)
            recorded = attributions.totals_by_transaction(r.transaction_id for r in rows)
            overdrawn = self._overdrawn(plan, rows, recorded)
            if overdrawn is not None:
                db.rollback()
                raise ConcurrentModification(
                    f"Transaction {overdrawn} was attributed by another pass",
                    member_id=plan.member_id,
                    context={"transaction_id": overdrawn},
                )

            attributions.add_all(rows)
            db.commit()

        logger.debug(
            "member_committed",
            member_id=plan.member_id,
            version=plan.previous_version + 1,
            attributions=len(plan.attributions),
        )

    @staticmethod
    def _overdrawn(
        plan: ReconciliationPlan, rows: list[TransactionAttribution], recorded: dict[int, Money]
    ) -> int | None:
        amounts = {tx.id: Money.parse(tx.amount) for tx, _ in plan.attributions}
        for row in rows:
            already = recorded.get(row.transaction_id, ZERO)
            if exceeds_amount(amounts[row.transaction_id], already, row.amount):
                return row.transaction_id
        return None

    @staticmethod
    def _attribution_rows(plan: ReconciliationPlan) -> list[TransactionAttribution]:
        # One row per (transaction, member)
        merged: dict[int, TransactionAttribution] = {}
        for transaction, attribution in plan.attributions:
            row = merged.get(transaction.id)
            if row is None:
                merged[transaction.id] = TransactionAttribution(
                    transaction_id=transaction.id,
                    member_id=plan.member_id,
                    amount=attribution.amount,
                    kind=attribution.kind,
                )
            else:
                row.amount = row.amount + attribution.amount
        return list(merged.values())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append_transactions(self, rows: Iterable[dict[str, Any]]) -> list[BankTransaction]:
        """Insert transactions; ids are assigned in insertion order.

        Args:
            rows: Column values per transaction (``date``, ``amount``, ...)

        Raises:
            InvalidAmount: If an amount is not representable in minor units
            DatabaseIntegrityError: If a row violates a constraint
        """
        transactions = []
        for row in rows:
            values = dict(row)
            values["amount"] = Money.parse(values["amount"])
            transactions.append(BankTransaction(**values))

        with self.unit_of_work() as db:
            try:
                TransactionRepository(db).add_all(transactions)
                db.commit()
            except IntegrityError as e:
                raise wrap_exception(
                    e,
                    "Transaction violates a constraint",
                    exception_class=DatabaseIntegrityError,
                    count=len(transactions),
                ) from e

        logger.info("transactions_appended", count=len(transactions))
        return transactions

    def create_member(
        self,
        name: str,
        membership_start: date,
        fee: Any,
        *,
        interval: int = 1,
        membership_end: date | None = None,
        opening_balance: Any = ZERO,
        email: str = "",
        notes: str = "",
    ) -> Member:
        """Create a member whose account starts at ``opening_balance``.

        Raises:
            InvalidAmount: If the fee is not a positive amount
            InvalidInterval: If the interval is not a positive integer
        """
        fee = Money.parse(fee)
        if not fee.is_positive:
            raise InvalidAmount("Member fee must be positive", field="fee", value=fee, constraint="> 0")
        if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
            raise InvalidInterval(
                "Fee interval must be a positive integer",
                field="interval",
                value=interval,
                constraint="> 0",
            )
        opening_balance = Money.parse(opening_balance)

        member = Member(
            name=name,
            email=email,
            notes=notes,
            membership_start=membership_start,
            membership_end=membership_end,
            fee=fee,
            interval=interval,
            opening_balance=opening_balance,
            account=opening_balance,
            account_calculated_at=None,
            last_bank_transaction_at=Cursor.START.at,
            last_bank_transaction_number=Cursor.START.number,
            version=0,
        )
        with self.unit_of_work() as db:
            MemberRepository(db).add(member)
            db.commit()

        logger.info("member_created", member_id=member.id, fee=str(fee), interval=interval)
        return member

    def add_binding(
        self,
        member_id: int,
        identifier: str,
        match_subject: str | None = None,
        split_amount: Any = None,
    ) -> IdentifierBinding:
        """Bind an account identifier to a member.

        Raises:
            RecordNotFoundError: If the member does not exist
            InvalidAmount: If ``split_amount`` is given and not positive
            DatabaseIntegrityError: If the member already has a binding for the identifier
        """
        if split_amount is not None:
            split_amount = Money.parse(split_amount)
            if not split_amount.is_positive:
                raise InvalidAmount(
                    "Split amount must be positive",
                    field="split_amount",
                    value=split_amount,
                    constraint="> 0",
                )

        binding = IdentifierBinding(
            member_id=member_id,
            identifier=identifier,
            match_subject=match_subject,
            split_amount=split_amount,
        )
        with self.unit_of_work() as db:
            if MemberRepository(db).get(member_id) is None:
                raise RecordNotFoundError(
                    f"Member {member_id} not found", entity_type="Member", entity_id=member_id
                )
            try:
                BindingRepository(db).add(binding)
                db.commit()
            except IntegrityError as e:
                raise wrap_exception(
                    e,
                    "Binding already exists",
                    exception_class=DatabaseIntegrityError,
                    member_id=member_id,
                ) from e

        logger.info("binding_added", member_id=member_id, match_subject=match_subject)
        return binding

    def delete_binding(self, member_id: int, identifier: str) -> None:
        """Remove a binding.

        Raises:
            RecordNotFoundError: If no such binding exists
        """
        with self.unit_of_work() as db:
            binding = BindingRepository(db).get(member_id, identifier)
            if binding is None:
                raise RecordNotFoundError(
                    f"Member {member_id} has no binding for this identifier",
                    entity_type="IdentifierBinding",
                    entity_id=member_id,
                )
            db.delete(binding)
            db.commit()
        logger.info("binding_deleted", member_id=member_id)

    def delete_member(self, member_id: int) -> None:
        """Delete a member with its bindings, transactions and attributions.

        Raises:
            RecordNotFoundError: If the member does not exist
        """
        with self.unit_of_work() as db:
            member = MemberRepository(db).get(member_id)
            if member is None:
                raise RecordNotFoundError(
                    f"Member {member_id} not found", entity_type="Member", entity_id=member_id
                )
            db.delete(member)
            db.commit()
        logger.info("member_deleted", member_id=member_id)
