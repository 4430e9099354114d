"""Membership dues ledger and reconciliation engine.

This module implements:
- Exact money arithmetic in minor units
- Transaction attribution through bank identifier bindings
- Fee scheduling per member contract
- Incremental, idempotent reconciliation with optimistic commits
- Prometheus metrics monitoring

Architecture: Domain-Driven Design (DDD) + Hexagonal Architecture
"""

__all__ = [
    "Member",
    "IdentifierBinding",
    "BankTransaction",
    "TransactionAttribution",
    "Money",
    "Cursor",
    "MatchResult",
    "ReconciliationPlan",
    "MemberOutcome",
    "BatchResult",
    "MatchOutcome",
    "OutcomeStatus",
    # Metrics
    "start_metrics_server",
]

from .domain.enums import MatchOutcome, OutcomeStatus
from .domain.models import BankTransaction, IdentifierBinding, Member, TransactionAttribution
from .domain.money import Money
from .domain.value_objects import BatchResult, Cursor, MatchResult, MemberOutcome, ReconciliationPlan
from .metrics import start_metrics_server
