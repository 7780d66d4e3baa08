"""Database engine and session factories.

Provides database connectivity and session management for the alias store
and the IP ledger. Each table group may live in its own database; both
default to the same SQLite file.

SQLite engines start every transaction with BEGIN IMMEDIATE so that a
read-modify-write sequence (counter reset-then-increment, ban
extend-or-create) holds the write lock for its whole duration. The MTA runs
one handler process per message, so this is what serializes them.
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _ensure_sqlite_directory(database: str) -> None:
    """Create the parent directory of a SQLite database file if missing."""
    if not database or database == ":memory:":
        return
    directory = os.path.dirname(os.path.abspath(database))
    if not os.path.isdir(directory):
        logger.info(f"Creating database directory: {directory}")
        os.makedirs(directory, exist_ok=True)


def _install_sqlite_locking(engine: Engine) -> None:
    """Take over transaction control from pysqlite and begin IMMEDIATE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's implicit BEGIN so ours is the only one
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for the given URL.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Engine: Configured engine

    Raises:
        OSError: If the SQLite database directory cannot be created
    """
    url = make_url(database_url)
    engine_kwargs = {
        "pool_pre_ping": True,
        "echo": False,
    }

    if url.get_backend_name() == "sqlite":
        _ensure_sqlite_directory(url.database)
        engine_kwargs["connect_args"] = {
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
            "check_same_thread": False,
        }
        engine = create_engine(database_url, **engine_kwargs)
        _install_sqlite_locking(engine)
        return engine

    engine_kwargs["pool_size"] = 5
    engine_kwargs["max_overflow"] = 10
    return create_engine(database_url, **engine_kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to an engine.

    Instances stay readable after commit so stores can hand them back to
    callers once the session is closed.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def init_schema(engine: Engine, base) -> None:
    """Create all tables of a declarative base if they do not exist."""
    base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager for one database transaction.

    Usage:
        with session_scope(factory) as session:
            session.query(Alias).all()

    Automatically commits on success, rolls back on exception.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def ping(session_factory: sessionmaker) -> None:
    """Run a trivial query; raises if the database is unreachable."""
    with session_scope(session_factory) as session:
        session.execute(text("SELECT 1"))
