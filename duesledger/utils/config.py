"""Application settings.

Pydantic-based configuration read from the environment (prefix
``DUESLEDGER_``) and an optional ``.env`` file.

Environment Variables:
- DUESLEDGER_DATABASE_URL: SQLAlchemy URL (default: sqlite:///./duesledger.db)
- DUESLEDGER_FEE_INTERVAL_UNIT: months or days (default: months)
- DUESLEDGER_IDENTIFIER_MODE: plain or hashed (default: hashed)
- DUESLEDGER_MAX_WORKERS: Parallel member passes (default: 4)
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from duesledger.exceptions import ConcurrentModification
from duesledger.ledger.domain.enums import FeeTiming, IdentifierMode, IntervalUnit
from duesledger.utils.retry import RetryConfig


class Settings(BaseSettings):
    """duesledger configuration.

    Example:
        >>> settings = Settings(fee_interval_unit="days")
        >>> settings.fee_policy().unit
        <IntervalUnit.DAYS: 'days'>
    """

    model_config = SettingsConfigDict(
        env_prefix="DUESLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///./duesledger.db",
        description="SQLAlchemy database URL",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Minimum log level")
    json_logs: bool = Field(default=False, description="Render logs as JSON")
    dev_mode: bool = Field(default=True, description="Colourful console logs")

    # Fee policy
    fee_interval_unit: IntervalUnit = Field(
        default=IntervalUnit.MONTHS,
        description="Unit of a member's fee interval",
    )
    fee_timing: FeeTiming = Field(
        default=FeeTiming.IN_ARREARS,
        description="Charge a period once completed (in_arrears) or once started (in_advance)",
    )
    prorate_final_period: bool = Field(
        default=False,
        description="Charge the partial period before membership_end proportionally",
    )

    # Bank import
    identifier_mode: IdentifierMode = Field(
        default=IdentifierMode.HASHED,
        description="Store bank account identifiers as normalised IBAN or hashed token",
    )

    # Reconciliation
    max_commit_retries: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Retries after a concurrent modification of a member",
    )
    retry_base_delay: float = Field(default=0.05, gt=0, description="Seconds before first retry")
    retry_max_delay: float = Field(default=1.0, gt=0, description="Backoff cap in seconds")
    max_workers: int = Field(default=4, ge=1, le=64, description="Parallel member passes")

    # Monitoring
    metrics_enabled: bool = Field(default=False, description="Start the Prometheus exporter")
    metrics_port: int = Field(default=8000, ge=1, le=65535, description="Exporter port")

    def fee_policy(self):
        """Build the fee scheduling policy described by these settings."""
        from duesledger.ledger.application.services.fee_scheduler import FeePolicy

        return FeePolicy(
            unit=self.fee_interval_unit,
            timing=self.fee_timing,
            prorate_final_period=self.prorate_final_period,
        )

    def retry_config(self) -> RetryConfig:
        """Retry policy for optimistic commit conflicts."""
        return RetryConfig(
            max_retries=self.max_commit_retries,
            base_delay=self.retry_base_delay,
            max_delay=max(self.retry_max_delay, self.retry_base_delay),
            retryable_exceptions=(ConcurrentModification,),
        )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings(force_reload: bool = False) -> Settings:
    """Get or create the settings.

    Args:
        force_reload: Force reload from environment

    Returns:
        Settings instance
    """
    global _settings

    if _settings is None or force_reload:
        _settings = Settings()

    return _settings
