"""Domain value objects for the dues ledger.

Value Objects in DDD:
- Immutable (frozen dataclasses)
- No identity (equality based on attributes)
- Describe results and positions, not entities
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, ClassVar

from .enums import AbortReason, AttributionKind, MatchOutcome, OutcomeStatus, SkipReason
from .money import ZERO, Money

if TYPE_CHECKING:
    from .models import BankTransaction, IdentifierBinding


@dataclass(frozen=True, order=True)
class Cursor:
    """Position in the transaction stream: ``(date, transaction id)``.

    Dates alone are not unique, so the transaction id breaks ties. Ordering
    is lexicographic, which is the order transactions are folded in.
    """

    at: date
    number: int

    START: ClassVar[Cursor]

    @classmethod
    def of(cls, transaction: BankTransaction) -> Cursor:
        return cls(transaction.date, transaction.id)

    def __str__(self) -> str:
        return f"{self.at.isoformat()}#{self.number}"


Cursor.START = Cursor(date.min, 0)


@dataclass(frozen=True)
class Attribution:
    """A (member, amount) pair produced by the matcher."""

    member_id: int
    amount: Money
    kind: AttributionKind = AttributionKind.DIRECT
    binding: IdentifierBinding | None = field(default=None, compare=False, repr=False)


def exceeds_amount(amount: Money, recorded: Money, added: Money) -> bool:
    """True when crediting ``added`` on top of ``recorded`` exceeds the transaction ``amount``."""
    return abs(recorded) + abs(added) > abs(amount)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of attributing one transaction.

    Attributes:
        transaction: The attributed transaction
        outcome: MATCHED / SPLIT / MANUAL / UNMATCHED
        attributions: Amounts per member; empty when unmatched
        reason: Human-readable explanation for review screens and logs
    """

    transaction: BankTransaction = field(compare=False, repr=False)
    outcome: MatchOutcome
    attributions: tuple[Attribution, ...] = ()
    reason: str = ""

    @property
    def is_unmatched(self) -> bool:
        return self.outcome is MatchOutcome.UNMATCHED

    @property
    def total(self) -> Money:
        return Money.sum(a.amount for a in self.attributions)

    def amount_for(self, member_id: int) -> Money:
        """Sum of the amounts attributed to ``member_id``."""
        return Money.sum(a.amount for a in self.attributions if a.member_id == member_id)


@dataclass(frozen=True)
class FeePeriod:
    """One charged fee period of a member."""

    start: date
    end: date  # exclusive
    amount: Money
    description: str


@dataclass(frozen=True)
class ReconciliationPlan:
    """Result of folding a member's pending transactions, ready to commit.

    Attributes:
        member_id: Member the plan belongs to
        previous_cursor: Cursor read before the fold, used as the commit guard
        new_cursor: Cursor after the last folded transaction
        previous_calculated_at: account_calculated_at read before the fold
        previous_account: account read before the fold
        previous_version: Member version read before the fold, the commit guard
        new_calculated_at: account_calculated_at after the fold
        attributed: Sum of transaction amounts attributed to the member
        fees: Fee increment accrued by this pass
        attributions: (transaction, attribution) pairs for the member
        match_results: Matcher results for every folded transaction
        excluded: Folded transactions whose amount is already held by
            other members; the cursor passes them without crediting
    """

    member_id: int
    previous_cursor: Cursor
    new_cursor: Cursor
    previous_calculated_at: date | None
    new_calculated_at: date | None
    previous_account: Money = ZERO
    previous_version: int = 0
    attributed: Money = ZERO
    fees: Money = ZERO
    attributions: tuple[tuple[BankTransaction, Attribution], ...] = ()
    match_results: tuple[MatchResult, ...] = ()
    excluded: tuple[BankTransaction, ...] = ()

    @property
    def delta(self) -> Money:
        """Balance change: payments in, fees out."""
        return self.attributed - self.fees

    @property
    def new_account(self) -> Money:
        return self.previous_account + self.delta

    @property
    def is_noop(self) -> bool:
        """True when committing would change nothing."""
        return (
            self.new_cursor == self.previous_cursor
            and self.new_calculated_at == self.previous_calculated_at
            and not self.delta
        )

    @property
    def unmatched(self) -> tuple[MatchResult, ...]:
        return tuple(r for r in self.match_results if r.is_unmatched)


@dataclass(frozen=True)
class MemberOutcome:
    """Outcome of one member's reconciliation pass within a batch."""

    member_id: int
    status: OutcomeStatus
    delta: Money = ZERO
    skip_reason: SkipReason | None = None
    abort_reason: AbortReason | None = None
    error: str | None = None
    transaction_id: int | None = None  # Offending transaction on abort
    attempts: int = 1

    @classmethod
    def committed(cls, member_id: int, delta: Money, attempts: int = 1) -> MemberOutcome:
        return cls(member_id, OutcomeStatus.COMMITTED, delta=delta, attempts=attempts)

    @classmethod
    def skipped(cls, member_id: int, reason: SkipReason) -> MemberOutcome:
        return cls(member_id, OutcomeStatus.SKIPPED, skip_reason=reason)

    @classmethod
    def aborted(
        cls,
        member_id: int,
        reason: AbortReason,
        error: str | None = None,
        transaction_id: int | None = None,
        attempts: int = 1,
    ) -> MemberOutcome:
        return cls(
            member_id,
            OutcomeStatus.ABORTED,
            abort_reason=reason,
            error=error,
            transaction_id=transaction_id,
            attempts=attempts,
        )

    @property
    def is_committed(self) -> bool:
        return self.status is OutcomeStatus.COMMITTED

    @property
    def is_aborted(self) -> bool:
        return self.status is OutcomeStatus.ABORTED

    @property
    def is_skipped(self) -> bool:
        return self.status is OutcomeStatus.SKIPPED


@dataclass(frozen=True)
class BatchResult:
    """Outcomes of a reconciliation batch keyed by member id."""

    as_of: date
    outcomes: dict[int, MemberOutcome]

    def with_status(self, status: OutcomeStatus) -> list[MemberOutcome]:
        return [o for o in self.outcomes.values() if o.status is status]

    @property
    def committed(self) -> list[MemberOutcome]:
        return self.with_status(OutcomeStatus.COMMITTED)

    @property
    def aborted(self) -> list[MemberOutcome]:
        return self.with_status(OutcomeStatus.ABORTED)

    @property
    def skipped(self) -> list[MemberOutcome]:
        return self.with_status(OutcomeStatus.SKIPPED)

    def summary(self) -> dict[str, Any]:
        return {
            "as_of": self.as_of.isoformat(),
            "members": len(self.outcomes),
            "committed": len(self.committed),
            "aborted": len(self.aborted),
            "skipped": len(self.skipped),
        }


@dataclass(frozen=True)
class BankRecord:
    """Raw transaction record as yielded by a bank statement producer."""

    date: date
    account_name: str
    iban: str | None
    amount: Any  # str/Decimal/int, validated into Money on ingest
    description: str
    member_id: int | None = None


@dataclass
class IngestResult:
    """Summary of a transaction ingest."""

    inserted: list[BankTransaction] = field(default_factory=list)
    rejected: list[tuple[BankRecord, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.inserted)

    @property
    def error_count(self) -> int:
        return len(self.rejected)


@dataclass(frozen=True)
class BindingSuggestion:
    """A member proposed for an unmatched transaction."""

    member_id: int
    member_name: str
    confidence: float
    reason: str


@dataclass(frozen=True)
class StatementEntry:
    """One line of a member's account statement."""

    date: date
    amount: Money
    description: str
    transaction_id: int | None = None


@dataclass(frozen=True)
class AuditReport:
    """Recomputed vs stored balance of a member."""

    member_id: int
    expected: Money
    actual: Money
    attributed: Money
    fees: Money
    opening_balance: Money

    @property
    def consistent(self) -> bool:
        return self.expected == self.actual

    @property
    def difference(self) -> Money:
        return self.actual - self.expected
