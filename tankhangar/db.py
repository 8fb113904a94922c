"""SQLite connection handling, transactions and CSV loading."""

from __future__ import annotations

import csv
import re
import sqlite3
from contextlib import contextmanager
from os import PathLike
from typing import Iterator

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DatabaseError(Exception):
    """Raised when a database operation fails."""


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"invalid table name: {name!r}")
    return name


def connect(path: str | PathLike[str] = ":memory:") -> sqlite3.Connection:
    """Open a database with foreign keys enforced and explicit transactions."""
    try:
        conn = sqlite3.connect(str(path), isolation_level=None)
        conn.execute("PRAGMA foreign_keys = ON")
    except sqlite3.Error as exc:
        raise DatabaseError(f"cannot connect to {path}: {exc}") from exc
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the block in a transaction: commit on success, roll back on error.

    Inside an already open transaction the block simply joins it.
    Database errors leave the block as DatabaseError.
    """
    if conn.in_transaction:
        try:
            yield conn
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc
        return

    try:
        conn.execute("BEGIN")
    except sqlite3.Error as exc:
        raise DatabaseError(f"BEGIN failed: {exc}") from exc

    try:
        yield conn
    except sqlite3.Error as exc:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise DatabaseError(str(exc)) from exc
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise

    try:
        conn.execute("COMMIT")
    except sqlite3.Error as exc:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise DatabaseError(f"COMMIT failed: {exc}") from exc


def is_table_empty(conn: sqlite3.Connection, table_name: str) -> bool:
    """Return True when the table holds no rows."""
    table = _check_identifier(table_name)
    try:
        row = conn.execute(
            f"SELECT NOT EXISTS (SELECT 1 FROM {table} LIMIT 1)"
        ).fetchone()
    except sqlite3.Error as exc:
        raise DatabaseError(f"query failed for table {table}: {exc}") from exc
    return bool(row[0])


def _table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    try:
        rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc
    if not rows:
        raise DatabaseError(f"table {table} does not exist")
    return [row[1] for row in rows]


def import_from_csv(
    conn: sqlite3.Connection, table_name: str, file_path: str | PathLike[str]
) -> int:
    """Load a CSV file with a header line into the table, column by position.

    Empty fields are stored as NULL. Returns the number of rows loaded.
    """
    table = _check_identifier(table_name)
    columns = _table_columns(conn, table)
    placeholders = ", ".join("?" for _ in columns)
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"

    try:
        handle = open(file_path, newline="", encoding="utf-8")
    except OSError as exc:
        raise DatabaseError(f"cannot open file {file_path}") from exc

    loaded = 0
    with handle, transaction(conn):
        reader = csv.reader(handle)
        next(reader, None)
        for line_no, row in enumerate(reader, start=2):
            if not row:
                continue
            if len(row) != len(columns):
                raise DatabaseError(
                    f"{file_path}:{line_no}: expected {len(columns)} fields, "
                    f"got {len(row)}"
                )
            conn.execute(sql, [value if value != "" else None for value in row])
            loaded += 1
    return loaded