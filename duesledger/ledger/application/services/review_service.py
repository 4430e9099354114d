"""Manual review of transactions the matcher can not attribute.

Unmatched transactions are recorded, folded past and never attributed
automatically. A reviewer either binds the counterparty identifier to a member
(affecting later passes) or assigns the single transaction by appending a
manual resolution row.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ....exceptions import BusinessLogicError, MatchError
from ....utils.logging import get_logger
from ...domain.models import BankTransaction, IdentifierBinding
from ...domain.value_objects import BindingSuggestion, MatchResult
from ...infrastructure.store import SqlAlchemyLedgerStore
from ...matchers.account_name import AccountNameSuggester
from ...matchers.base import IAttributionMatcher
from ...matchers.binding import BindingMatcher

logger = get_logger(__name__)


@dataclass
class ReviewItem:
    """An unattributed transaction with the matcher's verdict and suggestions."""

    transaction: BankTransaction
    reason: str
    suggestions: list[BindingSuggestion] = field(default_factory=list)


class ReviewService:
    """Review queue for unmatched transactions."""

    def __init__(
        self,
        store: SqlAlchemyLedgerStore,
        matcher: IAttributionMatcher | None = None,
        suggester: AccountNameSuggester | None = None,
    ) -> None:
        self.store = store
        self.matcher = matcher or BindingMatcher()
        self.suggester = suggester or AccountNameSuggester()

    def unmatched(self, since: date | None = None) -> list[ReviewItem]:
        """Transactions the matcher currently attributes to nobody.

        Transactions whose bindings are ambiguous are listed too, since they
        block the members concerned until someone fixes the bindings.
        """
        transactions = self.store.unattributed_transactions(since)
        identifiers = {tx.account_identifier for tx in transactions if tx.account_identifier}
        bindings = self.store.bindings_for_identifiers(identifiers)
        members = self.store.list_members()

        items = []
        for transaction in transactions:
            try:
                result = self.matcher.attribute(transaction, bindings)
            except MatchError as e:
                items.append(ReviewItem(transaction, e.message))
                continue
            if result.is_unmatched:
                items.append(
                    ReviewItem(transaction, result.reason, self.suggester.suggest(transaction, members))
                )

        logger.info("review_queue_built", since=since.isoformat() if since else None, items=len(items))
        return items

    def bind(
        self,
        transaction_id: int,
        member_id: int,
        match_subject: str | None = None,
        split_amount: Any = None,
    ) -> IdentifierBinding:
        """Bind a transaction's counterparty identifier to a member.

        Only transactions after the member's cursor are affected.

        Raises:
            BusinessLogicError: If the transaction has no account identifier
                or a member's pass already attributed it
            RecordNotFoundError: If the transaction or member does not exist
        """
        transaction = self.store.get_transaction(transaction_id)
        if transaction.account_identifier is None:
            raise BusinessLogicError(
                "Transaction has no account identifier to bind",
                context={"transaction_id": transaction_id},
            )
        self._ensure_unattributed(transaction_id)
        return self.store.add_binding(
            member_id,
            transaction.account_identifier,
            match_subject=match_subject,
            split_amount=split_amount,
        )

    def assign(self, transaction_id: int, member_id: int) -> BankTransaction:
        """Re-book an unmatched transaction to a member.

        Appends a resolution row carrying the member explicitly; the original
        is excluded from later passes. The row is dated no earlier than the
        member's cursor so the member's next pass picks it up.

        Raises:
            BusinessLogicError: If the transaction is not currently unmatched
            RecordNotFoundError: If the transaction or member does not exist
        """
        original = self.store.get_transaction(transaction_id)
        member = self.store.get_member(member_id)

        if original.member_id is not None or self.store.is_resolved(transaction_id):
            raise BusinessLogicError(
                "Transaction is already attributed",
                context={"transaction_id": transaction_id},
            )
        self._ensure_unattributed(transaction_id)
        if not self._currently_unmatched(original):
            raise BusinessLogicError(
                "Transaction is attributed by a binding",
                context={"transaction_id": transaction_id},
            )

        (resolution,) = self.store.append_transactions(
            [
                {
                    "member_id": member_id,
                    "date": max(original.date, member.cursor.at),
                    "account_name": original.account_name,
                    "account_identifier": original.account_identifier,
                    "amount": original.amount,
                    "description": original.description,
                    "resolves_transaction_id": original.id,
                }
            ]
        )
        logger.info(
            "transaction_assigned",
            transaction_id=transaction_id,
            resolution_id=resolution.id,
            member_id=member_id,
        )
        return resolution

    def _ensure_unattributed(self, transaction_id: int) -> None:
        recorded = self.store.attributed_totals([transaction_id])
        if transaction_id in recorded:
            raise BusinessLogicError(
                "Transaction is already attributed to a member",
                context={"transaction_id": transaction_id, "attributed": str(recorded[transaction_id])},
            )

    def _currently_unmatched(self, transaction: BankTransaction) -> bool:
        bindings = []
        if transaction.account_identifier is not None:
            bindings = self.store.bindings_for_identifiers([transaction.account_identifier])
        try:
            result: MatchResult = self.matcher.attribute(transaction, bindings)
        except MatchError:
            # Ambiguous bindings attribute nothing until they are fixed
            return True
        return result.is_unmatched
