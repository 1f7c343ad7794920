"""
Database module for the replication tracker.

This module encapsulates the persistence logic for the app.  It uses
SQLAlchemy to manage a SQLite or PostgreSQL database holding the
models declared in :mod:`replication_app.backend.models`.

Writes are gated by model validation: :func:`save` runs a record's
rules and only flushes it when they pass, leaving the failures on
``record.errors`` otherwise.  The rejected column values of a stored
record stay on the instance but are held back from later flushes until
a successful ``save``.  A ``before_flush`` hook refuses to write
invalid column changes that reach the session by any other route.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.attributes import flag_modified, set_committed_value
from sqlalchemy.pool import StaticPool

from .exceptions import RecordInvalid
from .models import Base

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _get_database_url() -> str:
    """Resolve the database URL from environment variables.

    The application supports both SQLite (used by default) and
    PostgreSQL.  A DATABASE_URL environment variable can be provided to
    override the default.  When a PostgreSQL URL beginning with
    ``postgres://`` is supplied, it is rewritten to ``postgresql://``
    because SQLAlchemy does not recognise the former scheme.
    """
    url = os.getenv('DATABASE_URL')
    if url:
        if url.startswith('postgres://'):
            url = url.replace('postgres://', 'postgresql://', 1)
        logger.info(f"Using database URL from environment: {url}")
        return url
    # fallback to a local SQLite database in the project directory
    default_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'replications.db')
    logger.info(f"Using local SQLite database at {default_path}")
    return f"sqlite:///{default_path}"


# Create engine and session factory.  StaticPool is used for SQLite to allow
# sharing connections across threads when running tests or the UI.
DATABASE_URL = _get_database_url()
if DATABASE_URL.startswith('sqlite'):  # special handling for SQLite
    engine = create_engine(
        DATABASE_URL,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool
    )
else:
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


_HELD_KEY = "_held_changes"


def _changed_columns(record: Any) -> List[str]:
    state = inspect(record)
    return [
        attr.key for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    ]


def _hold_back(record: Any) -> None:
    """Keep a stored record's rejected values in memory without flushing them.

    Each changed column is marked as already committed, so unrelated
    flushes leave the database row untouched.  The keys are remembered
    and flagged again by the next successful :func:`save`.
    """
    if not inspect(record).persistent:
        return
    held = record.__dict__.setdefault(_HELD_KEY, set())
    for key in _changed_columns(record):
        set_committed_value(record, key, getattr(record, key))
        held.add(key)


def _release(record: Any) -> None:
    for key in record.__dict__.pop(_HELD_KEY, set()):
        flag_modified(record, key)


@event.listens_for(SessionLocal, 'before_flush')
def _validate_before_flush(session: Session, flush_context: Any, instances: Any) -> None:
    for record in session.new:
        if hasattr(record, 'validate') and not record.validate():
            raise RecordInvalid(record)
    # Records dirty only through their collections write no columns.
    for record in session.dirty:
        if hasattr(record, 'validate') and _changed_columns(record) and not record.validate():
            raise RecordInvalid(record)


def init_db() -> None:
    """Initialise the database schema.

    Creates all tables defined on the Base metadata.  If tables
    already exist this function is a no‑op.
    """
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialised (tables created if missing)")


def drop_db() -> None:
    """Drop every table; used to reset the schema between test runs."""
    Base.metadata.drop_all(bind=engine)
    logger.info("Database tables dropped")


@contextmanager
def get_db() -> Iterator[Session]:
    """Provide a transactional scope for database operations.

    This helper yields a SQLAlchemy session and ensures that it is
    properly committed or rolled back.  Sessions are always closed
    after use.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def save(session: Session, record: Any) -> bool:
    """Validate ``record`` and write it if the rules pass.

    Returns ``False`` without raising when validation fails; the
    failures are available on ``record.errors`` and the session stays
    usable for other writes.
    """
    if not record.validate():
        logger.debug(f"Not saving {record!r}: {record.errors.full_messages()}")
        _hold_back(record)
        return False
    _release(record)
    session.add(record)
    session.flush()
    return True


def save_or_raise(session: Session, record: T) -> T:
    """Like :func:`save` but raise :class:`RecordInvalid` on failure."""
    if not save(session, record):
        raise RecordInvalid(record)
    return record


def create(session: Session, model: Type[T], **attrs: Any) -> T:
    """Build a ``model`` instance from ``attrs`` and try to save it.

    The instance is returned either way; check ``record.id`` or
    ``record.errors`` to see whether it was written.
    """
    record = model(**attrs)
    save(session, record)
    return record


def destroy(session: Session, record: Any) -> None:
    """Delete ``record`` along with the children it owns."""
    session.delete(record)
    session.flush()


def reload(session: Session, record: T) -> T:
    """Re-read ``record`` from the database, discarding unsaved changes."""
    record.__dict__.pop(_HELD_KEY, None)
    session.refresh(record)
    record.errors.clear()  # type: ignore[attr-defined]
    return record


def get_record(session: Session, model: Type[T], record_id: Any) -> Optional[T]:
    return session.get(model, record_id)
