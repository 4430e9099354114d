"""Database session management with the context manager pattern.

Usage:
    with db_session() as db:
        member = db.get(Member, 1)
        db.commit()
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from duesledger.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def db_session(factory: Callable[[], Session] | None = None) -> Generator[Session, None, None]:
    """Context manager for database sessions with automatic cleanup.

    Args:
        factory: Session factory; defaults to the one configured by ``init_db()``

    Yields:
        Session: SQLAlchemy session

    Raises:
        RuntimeError: If no factory is given and the database is not initialized
        Exception: Any exception from within the context (after rollback)

    Note:
        - Session is automatically rolled back on exception
        - Session is automatically closed on exit
        - You must call db.commit() to persist changes
    """
    if factory is None:
        from duesledger.storage.database.base import get_session

        factory = get_session

    db = factory()
    try:
        logger.debug("db_session_created", session_id=id(db))
        yield db
    except Exception as e:
        logger.debug(
            "db_session_error_rollback",
            error=str(e),
            error_type=type(e).__name__,
            session_id=id(db),
        )
        db.rollback()
        raise
    finally:
        logger.debug("db_session_closed", session_id=id(db))
        db.close()
