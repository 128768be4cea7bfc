"""Embedded SQLite store for raw rows, rollups and sync logs."""

from pos_metrics.store.db import add_column_if_missing, get_engine, init_db, insert_rows, upsert
from pos_metrics.store.schema import JSONList, JSONMap, metadata

__all__ = [
    "JSONList",
    "JSONMap",
    "add_column_if_missing",
    "get_engine",
    "init_db",
    "insert_rows",
    "metadata",
    "upsert",
]
