"""Prometheus metrics instrumentation for the reconciliation engine.

Provides metrics collection for monitoring reconciliation passes, matcher
outcomes and commit contention.
"""

from typing import Any

from prometheus_client import Counter, Histogram, start_http_server

from ..utils.logging import get_logger

logger = get_logger(__name__)

# ============================================================================
# Metric Definitions
# ============================================================================

# Counter: Member passes by outcome
reconciliation_passes_total = Counter(
    "duesledger_reconciliation_passes_total",
    "Total number of member reconciliation passes",
    ["status", "reason"],  # labels: committed/aborted/skipped, abort or skip reason
)

# Counter: Transactions folded
transactions_folded_total = Counter(
    "duesledger_transactions_folded_total",
    "Total number of bank transactions folded into member accounts",
    ["match_outcome"],  # labels: matched/split/manual/unmatched
)

# Counter: Lost compare-and-swap commits
commit_conflicts_total = Counter(
    "duesledger_commit_conflicts_total",
    "Total number of member commits rejected by a concurrent modification",
)

# Counter: Ingested records
transactions_ingested_total = Counter(
    "duesledger_transactions_ingested_total",
    "Total number of bank records ingested",
    ["status"],  # labels: success/error
)

# Histogram: Member pass duration
reconciliation_pass_duration_seconds = Histogram(
    "duesledger_reconciliation_pass_duration_seconds",
    "Time taken by one member reconciliation pass",
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)


# ============================================================================
# Metrics Server
# ============================================================================


def start_metrics_server(port: int = 8000) -> bool:
    """Start the Prometheus metrics HTTP server.

    Args:
        port: Port to expose metrics on (default: 8000)

    Returns:
        True if the server was started
    """
    try:
        start_http_server(port)
    except OSError as e:
        # Port already in use, skip
        logger.warning("metrics_server_not_started", port=port, error=str(e))
        return False
    logger.info("metrics_server_started", port=port)
    return True


# ============================================================================
# Convenience Functions
# ============================================================================


def record_pass(status: str, reason: str | None = None) -> None:
    """Record a finished member pass.

    Args:
        status: committed, aborted or skipped
        reason: Abort or skip reason, if any
    """
    reconciliation_passes_total.labels(status=status, reason=reason or "none").inc()


def record_folded(match_outcome: str, count: int = 1) -> None:
    """Record folded transactions by matcher outcome."""
    transactions_folded_total.labels(match_outcome=match_outcome).inc(count)


def record_commit_conflict() -> None:
    commit_conflicts_total.inc()


def record_ingest(status: str, count: int = 1) -> None:
    if count:
        transactions_ingested_total.labels(status=status).inc(count)


# ============================================================================
# Context Managers for Duration Tracking
# ============================================================================


class track_pass_duration:
    """Context manager to track member pass duration."""

    def __init__(self) -> None:
        self.timer: Any = None

    def __enter__(self) -> "track_pass_duration":
        self.timer = reconciliation_pass_duration_seconds.time()
        self.timer.__enter__()
        return self

    def __exit__(self, *args: Any) -> None:
        if self.timer:
            self.timer.__exit__(*args)
