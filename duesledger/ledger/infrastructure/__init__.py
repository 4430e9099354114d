"""Persistence adapters for the ledger."""

__all__ = ["LedgerStore", "SqlAlchemyLedgerStore"]

from .store import LedgerStore, SqlAlchemyLedgerStore
