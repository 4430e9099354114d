"""Pure reconciliation fold for one member.

Takes what the store read (member, pending transactions, bindings) and
produces a :class:`ReconciliationPlan`. Nothing here touches the database;
committing the plan is the store's job.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import TYPE_CHECKING

from ...domain.money import ZERO, Money
from ...domain.value_objects import Attribution, ReconciliationPlan, exceeds_amount
from ...matchers.base import IAttributionMatcher
from ...matchers.binding import BindingMatcher
from .fee_scheduler import FeeScheduler

if TYPE_CHECKING:
    from ...domain.models import BankTransaction, IdentifierBinding, Member


class LedgerReconciler:
    """Fold pending transactions and accrued fees into a member's account.

    Example:
        >>> reconciler = LedgerReconciler()
        >>> plan = reconciler.reconcile(member, pending, date(2024, 4, 1), bindings)
        >>> plan.delta, plan.new_cursor
        (Money('-10.00'), Cursor(at=datetime.date(2024, 3, 2), number=7))
    """

    def __init__(
        self,
        matcher: IAttributionMatcher | None = None,
        scheduler: FeeScheduler | None = None,
    ) -> None:
        self.matcher = matcher or BindingMatcher()
        self.scheduler = scheduler or FeeScheduler()

    def reconcile(
        self,
        member: "Member",
        pending: Iterable["BankTransaction"],
        as_of: date,
        bindings: Sequence["IdentifierBinding"],
        recorded: Mapping[int, Money] | None = None,
    ) -> ReconciliationPlan:
        """Build the plan for one pass.

        Transactions at or before the member's cursor are ignored; the rest are
        folded in ``(date, id)`` order and the cursor moves past every one of
        them, unmatched ones included.

        ``recorded`` holds the amounts already attributed per transaction id.
        A transaction whose share for this member would push its attributed
        total past its amount is excluded instead of credited.

        Raises:
            AmbiguousMatch, AmbiguousSplit: From the matcher; nothing is folded
            InvalidInterval, InvalidAmount: From the fee scheduler
        """
        previous_cursor = member.cursor
        ordered = sorted(
            (tx for tx in pending if tx.cursor > previous_cursor),
            key=lambda tx: tx.cursor,
        )

        new_cursor = previous_cursor
        recorded = recorded or {}
        results = []
        excluded = []
        mine: list[tuple[BankTransaction, Attribution]] = []
        for transaction in ordered:
            result = self.matcher.attribute(transaction, bindings)
            results.append(result)
            shares = [a for a in result.attributions if a.member_id == member.id]
            amount = Money.parse(transaction.amount)
            already = recorded.get(transaction.id, ZERO)
            if shares and exceeds_amount(amount, already, result.amount_for(member.id)):
                excluded.append(transaction)
            else:
                mine.extend((transaction, a) for a in shares)
            new_cursor = transaction.cursor

        fees, calculated_at = self._accrue(member, as_of)

        return ReconciliationPlan(
            member_id=member.id,
            previous_cursor=previous_cursor,
            new_cursor=new_cursor,
            previous_calculated_at=member.account_calculated_at,
            new_calculated_at=calculated_at,
            previous_account=Money.parse(member.account),
            previous_version=member.version,
            attributed=Money.sum(a.amount for _, a in mine),
            fees=fees,
            attributions=tuple(mine),
            match_results=tuple(results),
            excluded=tuple(excluded),
        )

    def _accrue(self, member: "Member", as_of: date) -> tuple[Money, date | None]:
        """Fee increment since the last calculation and the new calculation date."""
        previous = member.account_calculated_at
        due_now = self.scheduler.amount_due_through(member, as_of)
        if previous is None:
            return due_now, as_of
        if as_of <= previous:
            # account_calculated_at never moves backwards
            return ZERO, previous
        return due_now - self.scheduler.amount_due_through(member, previous), as_of
