"""Shared utilities: configuration, logging, retries."""
