"""Member statements and balance verification."""

from ....utils.logging import get_logger
from ...domain.enums import FeeTiming
from ...domain.money import ZERO, Money
from ...domain.value_objects import AuditReport, StatementEntry
from ...infrastructure.store import SqlAlchemyLedgerStore
from .fee_scheduler import FeeScheduler

logger = get_logger(__name__)


class AuditService:
    """Recompute member balances from the attribution trail."""

    def __init__(self, store: SqlAlchemyLedgerStore, scheduler: FeeScheduler | None = None) -> None:
        self.store = store
        self.scheduler = scheduler or FeeScheduler()

    def statement(self, member_id: int) -> list[StatementEntry]:
        """Account statement: payments folded and fees charged, in date order.

        Fees are listed through ``account_calculated_at``; a fee is dated on
        the day it became due.
        """
        member = self.store.get_member(member_id)
        entries = []

        if member.opening_balance:
            entries.append(StatementEntry(member.membership_start, member.opening_balance, "Opening balance"))

        for row in self.store.attributions_for_member(member_id):
            transaction = row.transaction
            entries.append(
                StatementEntry(transaction.date, row.amount, transaction.description, transaction.id)
            )

        if member.account_calculated_at is not None:
            in_advance = self.scheduler.policy.timing is FeeTiming.IN_ADVANCE
            for period in self.scheduler.fee_periods(member, member.account_calculated_at):
                due_on = period.start if in_advance else period.end
                entries.append(StatementEntry(due_on, -period.amount, period.description))

        entries.sort(key=lambda e: (e.date, e.transaction_id is None, e.transaction_id or 0))
        return entries

    def verify(self, member_id: int) -> AuditReport:
        """Check ``account == opening_balance + attributed - fees due``."""
        member = self.store.get_member(member_id)
        attributed = Money.sum(row.amount for row in self.store.attributions_for_member(member_id))
        fees = (
            self.scheduler.amount_due_through(member, member.account_calculated_at)
            if member.account_calculated_at is not None
            else ZERO
        )
        report = AuditReport(
            member_id=member_id,
            expected=member.opening_balance + attributed - fees,
            actual=member.account,
            attributed=attributed,
            fees=fees,
            opening_balance=member.opening_balance,
        )
        if not report.consistent:
            logger.warning(
                "member_balance_inconsistent",
                member_id=member_id,
                expected=str(report.expected),
                actual=str(report.actual),
            )
        return report
