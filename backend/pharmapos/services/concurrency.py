# Overview: Unit-of-work and row-locking helpers shared by the sale core services.

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import StorageError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite, unit_of_work takes the database write lock up front instead.
    """
    return query.with_for_update()


def _begin_write(session: Session) -> None:
    if session.get_bind().dialect.name != "sqlite":
        return
    dbapi_connection = session.connection().connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """
    Run a block as one all-or-nothing database transaction.

    Commits when the block exits normally. On any exception the session is
    rolled back before the exception propagates, so no partial write is ever
    visible. SQLAlchemy errors are re-raised as StorageError; domain errors
    pass through unchanged. Nothing is retried.
    """
    try:
        _begin_write(session)
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise StorageError("Transaction failed; no changes were committed") from exc
    except Exception:
        session.rollback()
        raise
