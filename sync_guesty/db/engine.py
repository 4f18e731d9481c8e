"""
SQLAlchemy engine factory and the process-wide engine.

PostgreSQL (production) gets a connection pool sized for the scheduler thread
plus concurrent admin requests. SQLite (tests, local runs) gets the settings
it needs to be shared across threads.
"""

from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from sync_guesty.config import DATABASE_URL
from sync_guesty.errors import DatabaseError

logger = structlog.get_logger(__name__)


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine with pooling appropriate to the database backend.

    Args:
        url: SQLAlchemy database URL
        echo: Log every SQL statement (development only)

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    parsed = make_url(url)
    kwargs: dict[str, Any] = {"future": True, "echo": echo}

    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        new_engine = create_engine(url, **kwargs)
        _configure_sqlite(new_engine)
        return new_engine

    return create_engine(
        url,
        pool_size=10,  # Number of connections to maintain in the pool
        max_overflow=20,  # Additional connections when pool is exhausted
        pool_pre_ping=True,  # Detect connections dropped by the server
        pool_recycle=3600,  # Recycle connections after 1 hour
        **kwargs,
    )


def _configure_sqlite(sqlite_engine: Engine) -> None:
    """
    Enforce foreign keys and take the write lock when a transaction begins.

    The driver's own deferred BEGIN is disabled so that concurrent writers
    queue on busy_timeout instead of failing with "database is locked".
    """

    @event.listens_for(sqlite_engine, "connect")
    def _set_pragma(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine: Engine = create_db_engine(DATABASE_URL)


def check_engine_health(db_engine: Engine | None = None) -> bool:
    """
    Check if the database is reachable.

    Used by the /ready endpoint before the service accepts traffic.

    Returns:
        bool: True if a trivial query succeeds, False otherwise
    """
    try:
        with (db_engine or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("database_health_check_failed", error=str(e))
        return False


@contextmanager
def write_transaction(db_engine: Engine, operation: str) -> Iterator[Connection]:
    """
    Open one write transaction, translating driver failures into DatabaseError.

    Everything executed inside the block commits together or not at all.

    Args:
        db_engine: Engine to write through
        operation: Short name used in the log event and error message

    Example:
        >>> with write_transaction(engine, "upsert_availability") as conn:
        ...     upsert_rows(conn, Availability, rows, ["listing_id", "date"])
    """
    try:
        with db_engine.begin() as conn:
            yield conn
    except SQLAlchemyError as e:
        logger.error("database_write_failed", operation=operation, error=str(e))
        raise DatabaseError(f"{operation} failed: {e}", details={"operation": operation}) from e
