"""Database layer."""

from .base import Base, SessionLocal, get_session, init_db

__all__ = ["Base", "SessionLocal", "get_session", "init_db"]
