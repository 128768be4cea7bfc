"""Engine creation, schema initialisation and small write helpers.

The store is a single SQLite file. Schema changes are additive only: tables
are created when absent and missing columns are added in place, so
``init_db`` is safe to call at the start of every run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from sqlalchemy import Table, create_engine, event, inspect, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from pos_metrics.store.schema import metadata

logger = logging.getLogger(__name__)

# (table, column, DDL type/default) added to stores created by older releases.
ADDITIVE_COLUMNS: tuple[tuple[str, str, str], ...] = (
    ("daily_metrics", "labor_cost_is_estimated", "BOOLEAN DEFAULT 0"),
    ("sync_log", "warnings", "TEXT DEFAULT '[]'"),
    ("me_sync_log", "warnings", "TEXT DEFAULT '[]'"),
)


def _set_sqlite_pragmas(dbapi_conn: Any, _record: Any) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def get_engine(database_path: Path | str) -> Engine:
    """Create an engine for the SQLite file at ``database_path``.

    The parent directory is created if needed. ``":memory:"`` is accepted for
    throwaway stores.
    """
    if str(database_path) == ":memory:":
        url = "sqlite://"
    else:
        path = Path(database_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{path}"
    engine = create_engine(url)
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def add_column_if_missing(conn: Connection, table: str, column: str, ddl: str) -> bool:
    """Add ``column`` to ``table`` unless it is already present.

    Returns:
        True if the column was added.
    """
    existing = {c["name"] for c in inspect(conn).get_columns(table)}
    if column in existing:
        return False
    conn.execute(text(f'ALTER TABLE "{table}" ADD COLUMN "{column}" {ddl}'))
    logger.info("Added column %s.%s", table, column)
    return True


def init_db(engine: Engine) -> None:
    """Create missing tables and apply additive column migrations."""
    metadata.create_all(engine)
    with engine.begin() as conn:
        for table, column, ddl in ADDITIVE_COLUMNS:
            add_column_if_missing(conn, table, column, ddl)


def upsert(
    conn: Connection,
    table: Table,
    rows: Sequence[dict],
    keys: Iterable[str] | None = None,
) -> int:
    """Insert ``rows`` into ``table``, overwriting rows whose primary key exists.

    Args:
        conn: Open connection (normally inside ``engine.begin()``).
        table: Target table.
        rows: Records as dicts keyed by column name.
        keys: Conflict columns. Defaults to the table's primary key.

    Returns:
        Number of rows written.
    """
    if not rows:
        return 0
    conflict = list(keys) if keys is not None else [c.name for c in table.primary_key]
    stmt = sqlite_insert(table)
    updatable = {
        c.name: stmt.excluded[c.name]
        for c in table.columns
        if c.name not in conflict and c.name in rows[0]
    }
    if updatable:
        stmt = stmt.on_conflict_do_update(index_elements=conflict, set_=updatable)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict)
    conn.execute(stmt, list(rows))
    return len(rows)


def insert_rows(conn: Connection, table: Table, rows: Sequence[dict]) -> int:
    """Plain bulk insert; a no-op for an empty batch."""
    if not rows:
        return 0
    conn.execute(table.insert(), list(rows))
    return len(rows)
