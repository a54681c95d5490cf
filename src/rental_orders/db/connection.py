"""Database connection helpers."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from rental_orders.config import DB_BUSY_TIMEOUT_SECONDS


def get_connection(
    database_path: Path,
    timeout: float = DB_BUSY_TIMEOUT_SECONDS,
) -> sqlite3.Connection:
    """Create a SQLite connection with foreign keys enabled."""
    connection = sqlite3.connect(database_path, timeout=timeout)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON;")
    return connection


@contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Provide a transaction scope for SQLite operations."""
    try:
        yield connection
    except Exception:
        connection.rollback()
        raise
    else:
        connection.commit()


@contextmanager
def unit_of_work(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block under the database write lock.

    ``BEGIN IMMEDIATE`` takes the reserved lock before the first read, so
    checks made inside the block stay valid until commit. A block opened
    while a transaction is already active joins it and leaves commit or
    rollback to the outer scope.
    """
    if connection.in_transaction:
        yield connection
        return
    connection.execute("BEGIN IMMEDIATE")
    try:
        yield connection
    except BaseException:
        connection.rollback()
        raise
    else:
        connection.commit()
