"""Standardized exception hierarchy for duesledger.

All exceptions carry a structured ``context`` dict so they can be logged with
structlog without string parsing.

Usage:
    from duesledger.exceptions import AmbiguousMatch, ConcurrentModification

    try:
        result = matcher.attribute(transaction, bindings)
    except AmbiguousMatch as e:
        logger.error("ambiguous_match", error=str(e), context=e.context)
"""

from __future__ import annotations

from typing import Any


class DuesLedgerError(Exception):
    """Base exception for all duesledger errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging (dict)
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Format exception with context for logging."""
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        if self.original_error:
            base = f"{base} [caused by: {type(self.original_error).__name__}]"
        return base

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


# =============================================================================
# Validation & Input Errors
# =============================================================================


class ValidationError(DuesLedgerError):
    """Raised when input data is malformed.

    Fatal for the offending record only; other records are unaffected.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]  # Truncate for safety
        if constraint:
            context["constraint"] = constraint
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class InvalidAmount(ValidationError):
    """Raised when a money amount can not be represented exactly in minor units."""


class InvalidInterval(ValidationError):
    """Raised when a member's fee interval is not a positive integer."""


class ConfigurationError(DuesLedgerError):
    """Raised when application configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if setting:
            context["setting"] = setting
        if expected:
            context["expected"] = expected
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Database & Persistence Errors
# =============================================================================


class DatabaseError(DuesLedgerError):
    """Base class for database-related errors."""


class RecordNotFoundError(DatabaseError):
    """Raised when a database record is not found."""

    def __init__(
        self,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: int | str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if entity_type:
            context["entity_type"] = entity_type
        if entity_id is not None:
            context["entity_id"] = str(entity_id)
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class DatabaseIntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""


class ConcurrentModification(DatabaseError):
    """Raised when a guarded member commit finds the member changed since it was read.

    The reconciliation service retries these with fresh reads.
    """

    def __init__(
        self,
        message: str,
        *,
        member_id: int | None = None,
        expected_cursor: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if member_id is not None:
            context["member_id"] = member_id
        if expected_cursor:
            context["expected_cursor"] = expected_cursor
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Business Logic Errors
# =============================================================================


class BusinessLogicError(DuesLedgerError):
    """Base class for business rule violations."""


class MatchError(BusinessLogicError):
    """Base class for binding configuration errors found while attributing a transaction.

    Attributes:
        transaction_id: The offending transaction, surfaced for manual resolution
    """

    def __init__(
        self,
        message: str,
        *,
        transaction_id: int | None = None,
        identifier: str | None = None,
        member_ids: list[int] | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if transaction_id is not None:
            context["transaction_id"] = transaction_id
        if identifier:
            context["identifier"] = identifier
        if member_ids:
            context["member_ids"] = member_ids
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.transaction_id = transaction_id


class AmbiguousMatch(MatchError):
    """Raised when several bindings apply to a transaction and nothing disambiguates them."""


class AmbiguousSplit(MatchError):
    """Raised when several split bindings apply and do not sum to the transaction amount."""


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    error: Exception,
    message: str,
    *,
    exception_class: type[DuesLedgerError] = DuesLedgerError,
    **context: Any,
) -> DuesLedgerError:
    """Wrap an external exception in the duesledger exception hierarchy.

    Example:
        try:
            session.commit()
        except IntegrityError as e:
            raise wrap_exception(
                e,
                "Binding already exists",
                exception_class=DatabaseIntegrityError,
                member_id=3,
            ) from e
    """
    return exception_class(
        message,
        context=context,
        original_error=error,
    )


__all__ = [
    # Base
    "DuesLedgerError",
    # Validation
    "ValidationError",
    "InvalidAmount",
    "InvalidInterval",
    "ConfigurationError",
    # Database
    "DatabaseError",
    "RecordNotFoundError",
    "DatabaseIntegrityError",
    "ConcurrentModification",
    # Business Logic
    "BusinessLogicError",
    "MatchError",
    "AmbiguousMatch",
    "AmbiguousSplit",
    # Utilities
    "wrap_exception",
]
