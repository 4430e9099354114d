"""Enumerations for the dues ledger domain."""

from enum import Enum


class MatchOutcome(Enum):
    """How the matcher resolved a bank transaction."""

    MATCHED = "matched"  # One binding applies, full amount
    SPLIT = "split"  # Amount divided among several members
    MANUAL = "manual"  # Explicit member attribution on the transaction
    UNMATCHED = "unmatched"  # No binding applies; left for manual review


class AttributionKind(Enum):
    """Why a member received (part of) a transaction amount."""

    DIRECT = "direct"
    SPLIT = "split"  # Fixed split_amount of a binding
    SHARE = "share"  # Equal share among several explicit subject matches
    REMAINDER = "remainder"  # What is left after split amounts were carved out
    MANUAL = "manual"


class IntervalUnit(Enum):
    """Unit of a member's fee interval."""

    MONTHS = "months"
    DAYS = "days"


class FeeTiming(Enum):
    """When a fee period becomes due."""

    IN_ARREARS = "in_arrears"  # Once the period is complete
    IN_ADVANCE = "in_advance"  # As soon as the period has started


class OutcomeStatus(Enum):
    """Result of one member's reconciliation pass."""

    COMMITTED = "committed"
    ABORTED = "aborted"
    SKIPPED = "skipped"


class SkipReason(Enum):
    NO_PENDING_WORK = "no_pending_work"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"


class AbortReason(Enum):
    AMBIGUOUS_MATCH = "ambiguous_match"
    AMBIGUOUS_SPLIT = "ambiguous_split"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_INTERVAL = "invalid_interval"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    MEMBER_NOT_FOUND = "member_not_found"
    STORE_ERROR = "store_error"


class IdentifierMode(Enum):
    """How bank account identifiers are stored."""

    PLAIN = "plain"
    HASHED = "hashed"
