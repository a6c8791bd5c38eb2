"""Database engine, transactions and schema bootstrap using SQLModel."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import event, inspect, select
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from .errors import InvalidMetadata, InvalidSchema
from .logging_config import get_logger
from .models import APP_NAME, SCHEMA_VERSION, meta_table

logger = get_logger(__name__)

# Seconds a connection waits on a locked database before failing.
BUSY_TIMEOUT = 30


def _on_connect(dbapi_connection, connection_record) -> None:
    # Hand BEGIN over to SQLAlchemy so _on_begin can pick the lock mode.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def _on_begin(conn) -> None:
    mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
    conn.exec_driver_sql(f"BEGIN {mode}")


def create_db_engine(db_path: Path, echo: bool = False) -> Engine:
    """Create a SQLite engine with WAL, foreign keys and explicit BEGIN handling.

    check_same_thread=False is needed because request handlers share the engine
    across threads.
    """
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": BUSY_TIMEOUT},
    )
    event.listen(engine, "connect", _on_connect)
    event.listen(engine, "begin", _on_begin)
    return engine


@contextmanager
def session_scope(engine: Engine, write: bool = False) -> Iterator[Session]:
    """Run the body in one transaction: commit on success, roll back on error.

    Write scopes start with BEGIN IMMEDIATE, taking the database write lock
    before the first read so read-modify-write sequences (token ledgers,
    ownership checks, imports) cannot interleave with another writer.
    """
    bind = engine.execution_options(sqlite_begin="IMMEDIATE") if write else engine
    with Session(bind, expire_on_commit=False) as session:
        with session.begin():
            yield session


def _read_schema_version(session: Session) -> Optional[str]:
    """Return the stored schema version, or None for an uninitialized database."""
    if not inspect(session.connection()).has_table(meta_table.name):
        return None

    row = session.connection().execute(
        select(meta_table.c.app_name, meta_table.c.schema_version)
    ).first()
    if row is None:
        raise InvalidMetadata()

    app_name, schema_version = row
    if app_name != APP_NAME:
        raise InvalidMetadata()
    return schema_version


def init_db(engine: Engine) -> None:
    """Create the schema on a fresh database, or verify an existing one.

    Raises InvalidMetadata when the META table belongs to another application
    and InvalidSchema when the schema version is not the one this code knows.
    """
    # Import models to ensure they are registered with SQLModel.metadata
    from . import models  # noqa: F401

    with session_scope(engine, write=True) as session:
        schema_version = _read_schema_version(session)
        if schema_version is None:
            logger.info(f"Initializing database schema {SCHEMA_VERSION}")
            SQLModel.metadata.create_all(session.connection())
            session.connection().execute(
                meta_table.insert().values(app_name=APP_NAME, schema_version=SCHEMA_VERSION)
            )
        elif schema_version != SCHEMA_VERSION:
            logger.error(
                f"Database schema {schema_version!r} is not supported (expected {SCHEMA_VERSION!r})"
            )
            raise InvalidSchema()


def reset_database(db_path: Path) -> Engine:
    """Delete the database file and recreate it."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    for suffix in ("", "-wal", "-shm"):
        candidate = db_path.with_name(db_path.name + suffix)
        if candidate.exists():
            candidate.unlink()
    engine = create_db_engine(db_path)
    init_db(engine)
    return engine
