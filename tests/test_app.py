"""Tests for application wiring."""

from datetime import date
from unittest.mock import Mock

import pytest

from duesledger import app as app_module
from duesledger.app import create_app
from duesledger.exceptions import ConfigurationError
from duesledger.ledger.domain.enums import FeeTiming, IdentifierMode
from duesledger.ledger.domain.money import Money
from duesledger.ledger.domain.value_objects import BankRecord
from duesledger.utils.config import Settings

pytestmark = pytest.mark.integration


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'ledger.db'}",
        fee_timing="in_advance",
        identifier_mode="plain",
        max_workers=2,
    )


def test_services_follow_settings(settings):
    app = create_app(settings)

    assert app.reconciliation.max_workers == 2
    assert app.reconciliation.reconciler.scheduler.policy.timing is FeeTiming.IN_ADVANCE
    assert app.audit.scheduler.policy.timing is FeeTiming.IN_ADVANCE
    assert app.ingest.identifier_mode is IdentifierMode.PLAIN


def test_end_to_end_pass(settings):
    app = create_app(settings)
    member = app.store.create_member("Eris Discordia", date(2024, 1, 1), "10.00")
    app.store.add_binding(member.id, "DE02120300000000202051")

    app.ingest.ingest(
        [
            BankRecord(
                date=date(2024, 1, 5),
                account_name="Eris Discordia",
                iban="DE02 1203 0000 0000 2020 51",
                amount="20.00",
                description="Beitrag",
            )
        ]
    )
    result = app.reconciliation.reconcile_all(date(2024, 2, 15))

    # In advance: January and February are due
    assert result.outcomes[member.id].delta == Money(0)
    assert app.audit.verify(member.id).consistent


def test_invalid_database_url(settings):
    with pytest.raises(ConfigurationError, match="Invalid database URL") as exc_info:
        create_app(settings.model_copy(update={"database_url": "not a database url"}))

    assert exc_info.value.context["setting"] == "database_url"
    assert exc_info.value.original_error is not None


def test_metrics_server_started_when_enabled(settings, monkeypatch):
    start = Mock(return_value=True)
    monkeypatch.setattr(app_module, "start_metrics_server", start)

    create_app(settings.model_copy(update={"metrics_enabled": True, "metrics_port": 9100}))

    start.assert_called_once_with(9100)


def test_metrics_server_not_started_by_default(settings, monkeypatch):
    start = Mock()
    monkeypatch.setattr(app_module, "start_metrics_server", start)

    create_app(settings)

    start.assert_not_called()
