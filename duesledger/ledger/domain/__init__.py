"""Ledger domain: entities, value objects and money."""
