"""Domain models for the dues ledger.

DDD Entities:
- Have identity (unique ID)
- Mapped to database tables via SQLAlchemy
- Balance and cursor columns of a member are only written by the
  reconciliation commit (see ``infrastructure.store``)
"""

from __future__ import annotations

import datetime

from sqlalchemy import (
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ...storage.database.base import Base, TimestampMixin
from ...storage.database.types import MoneyType
from .enums import AttributionKind
from .money import ZERO, Money
from .value_objects import Cursor


class Member(TimestampMixin, Base):
    """Member entity: identity, fee contract and running account.

    Attributes:
        name: Member name (also used to suggest bindings for unmatched transfers)
        email: Contact address
        notes: Free text
        membership_start: First day of membership (inclusive)
        membership_end: End of membership (exclusive), None while active
        fee: Fee charged per period
        interval: Number of interval units per fee period
        opening_balance: Balance the member was created with
        account: Running balance, positive = credit, negative = owed
        account_calculated_at: Date through which fees are folded into account
        last_bank_transaction_at: Cursor date of the last folded transaction
        last_bank_transaction_number: Cursor tie-break (transaction id)
        version: Incremented on every reconciliation commit
    """

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    membership_start: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    membership_end: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)

    fee: Mapped[Money] = mapped_column(MoneyType, nullable=False)
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    opening_balance: Mapped[Money] = mapped_column(MoneyType, nullable=False, default=ZERO)
    account: Mapped[Money] = mapped_column(MoneyType, nullable=False, default=ZERO)
    account_calculated_at: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)

    last_bank_transaction_at: Mapped[datetime.date] = mapped_column(
        Date, nullable=False, default=Cursor.START.at
    )
    last_bank_transaction_number: Mapped[int] = mapped_column(
        Integer, nullable=False, default=Cursor.START.number
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    bindings: Mapped[list[IdentifierBinding]] = relationship(
        back_populates="member", cascade="all, delete-orphan", passive_deletes=True
    )
    transactions: Mapped[list[BankTransaction]] = relationship(
        back_populates="member",
        cascade="all, delete-orphan",
        passive_deletes=True,
        foreign_keys="BankTransaction.member_id",
    )
    attributions: Mapped[list[TransactionAttribution]] = relationship(
        back_populates="member", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def cursor(self) -> Cursor:
        """Composite reconciliation cursor."""
        return Cursor(self.last_bank_transaction_at, self.last_bank_transaction_number)

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, name='{self.name}', account={self.account})>"


class IdentifierBinding(TimestampMixin, Base):
    """Maps a bank account identifier to a member.

    Several members may share one identifier (e.g. a joint account); they are
    told apart by ``match_subject`` and/or ``split_amount``.

    Attributes:
        member_id: Bound member
        identifier: Opaque account token (normalised IBAN or its hash)
        match_subject: Pattern searched in the transaction description
        split_amount: Fixed amount carved out of a shared transfer for this member
    """

    __tablename__ = "bank_import_member_ibans"

    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), primary_key=True
    )
    identifier: Mapped[str] = mapped_column(String(100), primary_key=True, index=True)
    match_subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    split_amount: Mapped[Money | None] = mapped_column(MoneyType, nullable=True)

    member: Mapped[Member] = relationship(back_populates="bindings")

    @property
    def is_catch_all(self) -> bool:
        return self.match_subject is None

    def __repr__(self) -> str:
        return (
            f"<IdentifierBinding(member_id={self.member_id}, "
            f"match_subject={self.match_subject!r}, split_amount={self.split_amount})>"
        )


class BankTransaction(Base):
    """An observed bank transaction. Inserted once, never updated.

    Attributes:
        id: Strictly increasing ordinal, the cursor tie-break
        member_id: Explicit attribution, None when the matcher has to resolve it
        date: Booking date
        account_name: Counterparty name as printed by the bank
        account_identifier: Opaque counterparty account token
        amount: Signed amount, positive = incoming payment
        description: Bank reference text, the matcher's subject input
        resolves_transaction_id: Unmatched transaction this row re-books manually
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_date_id", "date", "id"),
        # Never reuse ids of deleted rows, ids are cursor positions
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), nullable=True, index=True
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    account_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    account_identifier: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    amount: Mapped[Money] = mapped_column(MoneyType, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    resolves_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"), nullable=True, unique=True
    )

    member: Mapped[Member | None] = relationship(
        back_populates="transactions", foreign_keys=[member_id]
    )
    attributions: Mapped[list[TransactionAttribution]] = relationship(
        back_populates="transaction", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def cursor(self) -> Cursor:
        return Cursor(self.date, self.id)

    def __repr__(self) -> str:
        return (
            f"<BankTransaction(id={self.id}, date={self.date}, "
            f"amount={self.amount}, member_id={self.member_id})>"
        )


class TransactionAttribution(Base):
    """Amount of a transaction folded into one member's account.

    Written in the same database transaction as the member's cursor advance,
    so the set of attribution rows of a member always matches its cursor.
    """

    __tablename__ = "transaction_attributions"

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"), primary_key=True
    )
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    amount: Mapped[Money] = mapped_column(MoneyType, nullable=False)
    kind: Mapped[AttributionKind] = mapped_column(
        Enum(AttributionKind), nullable=False, default=AttributionKind.DIRECT
    )

    transaction: Mapped[BankTransaction] = relationship(back_populates="attributions")
    member: Mapped[Member] = relationship(back_populates="attributions")

    def __repr__(self) -> str:
        return (
            f"<TransactionAttribution(transaction_id={self.transaction_id}, "
            f"member_id={self.member_id}, amount={self.amount}, kind={self.kind.value})>"
        )
