"""Application wiring.

Builds the store and services from :class:`~duesledger.utils.config.Settings`:

    app = create_app()
    app.ingest.ingest(records)
    result = app.reconciliation.reconcile_all(date.today())
"""

from dataclasses import dataclass

from sqlalchemy.exc import ArgumentError

from .exceptions import ConfigurationError
from .ledger.application.services import (
    AuditService,
    FeeScheduler,
    IngestService,
    ReconciliationService,
    ReviewService,
)
from .ledger.infrastructure.store import SqlAlchemyLedgerStore
from .ledger.metrics import start_metrics_server
from .storage.database.base import init_db
from .utils.config import Settings, get_settings
from .utils.logging import configure_from_settings, get_logger

logger = get_logger(__name__)


@dataclass
class LedgerApp:
    """The configured store and services of one process."""

    settings: Settings
    store: SqlAlchemyLedgerStore
    reconciliation: ReconciliationService
    review: ReviewService
    audit: AuditService
    ingest: IngestService


def create_app(settings: Settings | None = None) -> LedgerApp:
    """Configure logging, database and metrics, and wire the services.

    Args:
        settings: Settings to use (default: ``get_settings()``)

    Raises:
        ConfigurationError: If the database URL can not be parsed
    """
    settings = settings or get_settings()
    configure_from_settings(settings)
    try:
        init_db(settings.database_url)
    except ArgumentError as e:
        raise ConfigurationError(
            "Invalid database URL",
            setting="database_url",
            expected="SQLAlchemy URL, e.g. sqlite:///./duesledger.db",
            original_error=e,
        ) from e

    if settings.metrics_enabled:
        start_metrics_server(settings.metrics_port)

    store = SqlAlchemyLedgerStore()
    app = LedgerApp(
        settings=settings,
        store=store,
        reconciliation=ReconciliationService.from_settings(store, settings),
        review=ReviewService(store),
        audit=AuditService(store, FeeScheduler(settings.fee_policy())),
        ingest=IngestService(store, identifier_mode=settings.identifier_mode),
    )
    logger.info(
        "app_created",
        fee_interval_unit=settings.fee_interval_unit.value,
        identifier_mode=settings.identifier_mode.value,
        max_workers=settings.max_workers,
    )
    return app
