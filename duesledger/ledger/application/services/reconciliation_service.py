"""Reconciliation service: runs member passes against the store.

A pass reads the member, its pending transactions and the bindings relevant
to them, lets :class:`LedgerReconciler` fold them into a plan, and commits the
plan with a compare-and-swap. A lost race (:class:`ConcurrentModification`)
is retried with fresh reads. Every other failure aborts that member only and
leaves its state untouched.
"""

import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextvars import copy_context
from dataclasses import replace
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from ....exceptions import (
    AmbiguousSplit,
    ConcurrentModification,
    DatabaseError,
    DuesLedgerError,
    InvalidAmount,
    InvalidInterval,
    MatchError,
    RecordNotFoundError,
    wrap_exception,
)
from ....utils.logging import (
    LogPerformance,
    clear_correlation_id,
    get_logger,
    log_reconciliation_aborted,
    log_reconciliation_committed,
    set_correlation_id,
)
from ....utils.retry import COMMIT_RETRY, RetryConfig, retry_sync
from ... import metrics
from ...domain.enums import AbortReason, SkipReason
from ...domain.value_objects import BatchResult, MemberOutcome, ReconciliationPlan
from ...infrastructure.store import LedgerStore
from .reconciler import LedgerReconciler

logger = get_logger(__name__)


class ReconciliationService:
    """Reconcile member accounts, one member or a whole batch.

    Args:
        store: Ledger store
        reconciler: Pure fold (matcher + fee scheduler)
        retry_config: Retry policy for commit conflicts; only
            ``ConcurrentModification`` is ever retried
        max_workers: Default number of parallel member passes
        clock: Monotonic clock the batch deadline is measured on
        sleep: Sleep used between retries

    Example:
        >>> service = ReconciliationService(SqlAlchemyLedgerStore())
        >>> result = service.reconcile_all(date(2024, 4, 1))
        >>> result.summary()
        {'as_of': '2024-04-01', 'members': 12, 'committed': 11, 'aborted': 1, 'skipped': 0}
    """

    def __init__(
        self,
        store: LedgerStore,
        reconciler: LedgerReconciler | None = None,
        retry_config: RetryConfig | None = None,
        max_workers: int = 4,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.retry_config = replace(
            retry_config or COMMIT_RETRY, retryable_exceptions=(ConcurrentModification,)
        )
        self.store = store
        self.reconciler = reconciler or LedgerReconciler()
        self.max_workers = max_workers
        self.clock = clock
        self.sleep = sleep

    @classmethod
    def from_settings(cls, store: LedgerStore, settings) -> "ReconciliationService":
        """Build a service configured by :class:`~duesledger.utils.config.Settings`."""
        from .fee_scheduler import FeeScheduler

        return cls(
            store,
            reconciler=LedgerReconciler(scheduler=FeeScheduler(settings.fee_policy())),
            retry_config=settings.retry_config(),
            max_workers=settings.max_workers,
        )

    # ------------------------------------------------------------------
    # Single member
    # ------------------------------------------------------------------

    def plan_member(self, member_id: int, as_of: date) -> ReconciliationPlan:
        """Compute a member's plan without committing it (dry run).

        Raises:
            RecordNotFoundError: If the member does not exist
            MatchError: If a pending transaction can not be attributed
            InvalidInterval, InvalidAmount: If the member's fee contract is invalid
        """
        member = self.store.get_member(member_id)
        identifiers = {b.identifier for b in self.store.bindings_for_member(member_id)}
        pending = self.store.pending_transactions(member_id, member.cursor, identifiers)

        seen = {tx.account_identifier for tx in pending if tx.account_identifier is not None}
        bindings = self.store.bindings_for_identifiers(seen)
        recorded = self.store.attributed_totals(tx.id for tx in pending)
        return self.reconciler.reconcile(member, pending, as_of, bindings, recorded)

    def reconcile_member(self, member_id: int, as_of: date) -> MemberOutcome:
        """Run one member pass and report its outcome.

        Never raises for domain or store errors; they are reported as an
        ``Aborted`` outcome and the member is left unchanged.
        """
        attempts = 0

        def attempt() -> ReconciliationPlan:
            nonlocal attempts
            attempts += 1
            try:
                plan = self.plan_member(member_id, as_of)
                if not plan.is_noop:
                    self.store.commit_member(plan)
                return plan
            except SQLAlchemyError as e:
                raise wrap_exception(
                    e, "Store operation failed", exception_class=DatabaseError, member_id=member_id
                ) from e

        try:
            with metrics.track_pass_duration(), LogPerformance(
                "member_reconciliation", logger, member_id=member_id, as_of=as_of.isoformat()
            ):
                plan = retry_sync(
                    attempt,
                    config=self.retry_config,
                    on_retry=lambda e, n: self._on_conflict(member_id, n),
                    sleep=self.sleep,
                )
        except DuesLedgerError as e:
            return self._aborted(member_id, e, attempts)

        if plan.is_noop:
            metrics.record_pass("skipped", SkipReason.NO_PENDING_WORK.value)
            logger.debug("reconciliation_skipped", member_id=member_id, reason="no_pending_work")
            return MemberOutcome.skipped(member_id, SkipReason.NO_PENDING_WORK)

        for result in plan.match_results:
            metrics.record_folded(result.outcome.value)
        for result in plan.unmatched:
            logger.info(
                "transaction_unmatched",
                member_id=member_id,
                transaction_id=result.transaction.id,
                reason=result.reason,
            )
        for transaction in plan.excluded:
            logger.warning(
                "transaction_already_attributed",
                member_id=member_id,
                transaction_id=transaction.id,
            )
        metrics.record_pass("committed")
        log_reconciliation_committed(
            logger,
            member_id=member_id,
            delta=str(plan.delta),
            cursor=str(plan.new_cursor),
            account_calculated_at=plan.new_calculated_at.isoformat() if plan.new_calculated_at else "",
        )
        return MemberOutcome.committed(member_id, plan.delta, attempts=attempts)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def reconcile_all(
        self,
        as_of: date,
        member_ids: Iterable[int] | None = None,
        *,
        max_workers: int | None = None,
        deadline: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BatchResult:
        """Reconcile many members in parallel.

        Args:
            as_of: Date fees are accrued through
            member_ids: Members to reconcile (default: all)
            max_workers: Parallel passes (default: the service's)
            deadline: Point on ``clock`` after which no new pass starts
            cancel_event: When set, no new pass starts

        Returns:
            BatchResult with one outcome per member. Passes that had not
            started when cancelled or past the deadline are ``Skipped``;
            passes already running finish normally. The batch's correlation
            id is cleared when it returns.
        """
        ids = list(member_ids) if member_ids is not None else self.store.member_ids()
        workers = max_workers or self.max_workers
        correlation_id = set_correlation_id()

        logger.info(
            "reconciliation_batch_started",
            as_of=as_of.isoformat(),
            members=len(ids),
            max_workers=workers,
            correlation_id=correlation_id,
        )

        outcomes: dict[int, MemberOutcome] = {}
        try:
            with LogPerformance("reconciliation_batch", logger, as_of=as_of.isoformat()):
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reconcile") as pool:
                    futures = {
                        pool.submit(
                            copy_context().run, self._scheduled_pass, member_id, as_of, deadline, cancel_event
                        ): member_id
                        for member_id in ids
                    }
                    for future in as_completed(futures):
                        outcomes[futures[future]] = future.result()

            result = BatchResult(as_of=as_of, outcomes={mid: outcomes[mid] for mid in ids})
            logger.info("reconciliation_batch_finished", **result.summary())
        finally:
            clear_correlation_id()
        return result

    def _scheduled_pass(
        self,
        member_id: int,
        as_of: date,
        deadline: float | None,
        cancel_event: threading.Event | None,
    ) -> MemberOutcome:
        if cancel_event is not None and cancel_event.is_set():
            return self._skipped(member_id, SkipReason.CANCELLED)
        if deadline is not None and self.clock() >= deadline:
            return self._skipped(member_id, SkipReason.DEADLINE_EXCEEDED)
        return self.reconcile_member(member_id, as_of)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _on_conflict(self, member_id: int, attempt: int) -> None:
        metrics.record_commit_conflict()
        logger.info("commit_conflict", member_id=member_id, attempt=attempt)

    def _skipped(self, member_id: int, reason: SkipReason) -> MemberOutcome:
        metrics.record_pass("skipped", reason.value)
        logger.info("reconciliation_skipped", member_id=member_id, reason=reason.value)
        return MemberOutcome.skipped(member_id, reason)

    def _aborted(self, member_id: int, error: DuesLedgerError, attempts: int) -> MemberOutcome:
        reason = _abort_reason(error)
        transaction_id = error.transaction_id if isinstance(error, MatchError) else None

        metrics.record_pass("aborted", reason.value)
        log_reconciliation_aborted(
            logger,
            member_id=member_id,
            reason=reason.value,
            transaction_id=transaction_id,
            error=str(error),
        )
        return MemberOutcome.aborted(
            member_id,
            reason,
            error=str(error),
            transaction_id=transaction_id,
            attempts=attempts,
        )


def _abort_reason(error: DuesLedgerError) -> AbortReason:
    if isinstance(error, AmbiguousSplit):
        return AbortReason.AMBIGUOUS_SPLIT
    if isinstance(error, MatchError):
        return AbortReason.AMBIGUOUS_MATCH
    if isinstance(error, InvalidInterval):
        return AbortReason.INVALID_INTERVAL
    if isinstance(error, InvalidAmount):
        return AbortReason.INVALID_AMOUNT
    if isinstance(error, ConcurrentModification):
        return AbortReason.CONCURRENT_MODIFICATION
    if isinstance(error, RecordNotFoundError):
        return AbortReason.MEMBER_NOT_FOUND
    return AbortReason.STORE_ERROR
