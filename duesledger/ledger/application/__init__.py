"""Application layer: use cases over the ledger domain."""
