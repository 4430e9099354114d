"""Tests for Prometheus metrics helpers."""

from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from duesledger.ledger import metrics

pytestmark = pytest.mark.unit


def _value(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_record_pass():
    labels = {"status": "aborted", "reason": "ambiguous_match"}
    before = _value("duesledger_reconciliation_passes_total", labels)

    metrics.record_pass("aborted", "ambiguous_match")

    assert _value("duesledger_reconciliation_passes_total", labels) == before + 1


def test_record_pass_without_reason():
    labels = {"status": "committed", "reason": "none"}
    before = _value("duesledger_reconciliation_passes_total", labels)

    metrics.record_pass("committed")

    assert _value("duesledger_reconciliation_passes_total", labels) == before + 1


def test_record_folded_and_conflicts():
    folded_before = _value("duesledger_transactions_folded_total", {"match_outcome": "split"})
    conflicts_before = _value("duesledger_commit_conflicts_total")

    metrics.record_folded("split", count=2)
    metrics.record_commit_conflict()

    assert _value("duesledger_transactions_folded_total", {"match_outcome": "split"}) == folded_before + 2
    assert _value("duesledger_commit_conflicts_total") == conflicts_before + 1


def test_record_ingest_skips_zero():
    before = _value("duesledger_transactions_ingested_total", {"status": "error"})

    metrics.record_ingest("error", 0)

    assert _value("duesledger_transactions_ingested_total", {"status": "error"}) == before


def test_track_pass_duration():
    before = _value("duesledger_reconciliation_pass_duration_seconds_count")

    with metrics.track_pass_duration():
        pass

    assert _value("duesledger_reconciliation_pass_duration_seconds_count") == before + 1


def test_start_metrics_server_port_in_use():
    with patch.object(metrics, "start_http_server", side_effect=OSError("Address already in use")):
        assert metrics.start_metrics_server(8000) is False


def test_start_metrics_server():
    with patch.object(metrics, "start_http_server") as start:
        assert metrics.start_metrics_server(9100) is True
    start.assert_called_once_with(9100)
