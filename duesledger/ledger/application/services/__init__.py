"""Ledger application services."""

__all__ = [
    "FeePolicy",
    "FeeScheduler",
    "LedgerReconciler",
    "ReconciliationService",
    "ReviewService",
    "AuditService",
    "IngestService",
]

from .audit_service import AuditService
from .fee_scheduler import FeePolicy, FeeScheduler
from .ingest_service import IngestService
from .reconciler import LedgerReconciler
from .reconciliation_service import ReconciliationService
from .review_service import ReviewService
