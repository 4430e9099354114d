"""duesledger - membership dues ledger with incremental bank reconciliation."""

__version__ = "0.1.0"
