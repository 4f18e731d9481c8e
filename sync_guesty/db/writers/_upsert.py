"""
Generic upsert helper shared by every writer.

Builds ``INSERT ... ON CONFLICT DO UPDATE`` for whichever dialect the
connection speaks (PostgreSQL in production, SQLite in tests). Unlike a
change-detecting upsert, every conflicting row is updated, because the
refreshed ``last_synced_at`` is itself the point of a sync.
"""

from typing import Any, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection

# Most rows per statement
CHUNK_SIZE = 200

# SQLite builds before 3.32 bind at most 999 parameters per statement
MAX_BIND_PARAMS = 999


def chunk_size(column_count: int) -> int:
    """Return how many rows of ``column_count`` columns fit one statement."""
    return max(1, min(CHUNK_SIZE, MAX_BIND_PARAMS // max(column_count, 1)))


def dialect_insert(conn: Connection, table: type) -> Any:
    """Return a dialect-specific INSERT construct supporting ON CONFLICT."""
    if conn.dialect.name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


def upsert_rows(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str] | None = None,
) -> int:
    """
    Insert rows, updating them in place on a unique-key conflict.

    Runs on the caller's connection, so a caller holding ``engine.begin()``
    gets all chunks committed or none.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., Listing, Availability)
        rows: Row dicts; all rows must carry the same keys
        conflict_columns: Columns of the unique constraint to conflict on
        update_columns: Columns overwritten on conflict (default: every
            column in the rows except the conflict columns)

    Returns:
        int: Number of rows written

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_rows(conn, Availability, rows, ["listing_id", "date"])
    """
    if not rows:
        return 0

    if update_columns is None:
        update_columns = [col for col in rows[0] if col not in conflict_columns]

    size = chunk_size(len(rows[0]))
    for offset in range(0, len(rows), size):
        chunk = rows[offset : offset + size]
        stmt = dialect_insert(conn, table).values(chunk)
        set_dict = {col: getattr(stmt.excluded, col) for col in update_columns}
        stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=set_dict)
        conn.execute(stmt)

    return len(rows)
