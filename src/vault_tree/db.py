"""Database connection, DDL, transaction scopes and query primitives."""

from __future__ import annotations

import itertools
import json
import logging
import sqlite3
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from vault_tree.exceptions import DatabaseError, StorageError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.1"

_savepoint_ids = itertools.count()

# ---------------------------------------------------------------------------
# TAGS type adapter/converter
# ---------------------------------------------------------------------------

def _adapt_tags(tags: frozenset) -> str:
    return json.dumps(sorted(tags))


def _convert_tags(data: bytes) -> frozenset[str]:
    if data is None or data == b"":
        return frozenset()
    return frozenset(json.loads(data))


sqlite3.register_adapter(frozenset, _adapt_tags)
sqlite3.register_converter("TAGS", _convert_tags)


# ---------------------------------------------------------------------------
# DDL statements
# ---------------------------------------------------------------------------

_DDL = """
-- Meta table
CREATE TABLE IF NOT EXISTS meta (
    key TEXT NOT NULL,
    value TEXT,
    UNIQUE (key)
);

-- Tree tables. Root groups have NULL supergroup_id and pos_index.
-- A NULL pos_index on any other row marks a detached item.
CREATE TABLE IF NOT EXISTS groups (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    icon TEXT,
    pos_index INTEGER CHECK( pos_index >= 0 ),
    supergroup_id INTEGER REFERENCES groups (id)
);
CREATE INDEX IF NOT EXISTS group_supergroup_index ON groups (supergroup_id);
CREATE UNIQUE INDEX IF NOT EXISTS group_position_index
    ON groups (supergroup_id, pos_index);

CREATE TABLE IF NOT EXISTS entries (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    tags TAGS,
    icon TEXT,
    pos_index INTEGER CHECK( pos_index >= 0 ),
    group_id INTEGER NOT NULL REFERENCES groups (id)
);
CREATE INDEX IF NOT EXISTS entry_group_index ON entries (group_id);
CREATE UNIQUE INDEX IF NOT EXISTS entry_position_index
    ON entries (group_id, pos_index);

CREATE TABLE IF NOT EXISTS sections (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    pos_index INTEGER CHECK( pos_index >= 0 ),
    entry_id INTEGER NOT NULL REFERENCES entries (id)
);
CREATE INDEX IF NOT EXISTS section_entry_index ON sections (entry_id);
CREATE UNIQUE INDEX IF NOT EXISTS section_position_index
    ON sections (entry_id, pos_index);

CREATE TABLE IF NOT EXISTS elements (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    value TEXT NOT NULL DEFAULT '',
    type INTEGER NOT NULL DEFAULT 0 CHECK( type IN (0, 1) ),
    pos_index INTEGER CHECK( pos_index >= 0 ),
    section_id INTEGER NOT NULL REFERENCES sections (id)
);
CREATE INDEX IF NOT EXISTS element_section_index ON elements (section_id);
CREATE UNIQUE INDEX IF NOT EXISTS element_position_index
    ON elements (section_id, pos_index);

-- Users
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    username TEXT NOT NULL,
    email TEXT NOT NULL,
    display_name TEXT,
    forename TEXT,
    surname TEXT,
    role INTEGER NOT NULL DEFAULT 0 CHECK( role IN (0, 1) ),
    enabled BOOLEAN CHECK( enabled IN (0, 1) ) DEFAULT 0 NOT NULL,
    root_id INTEGER NOT NULL REFERENCES groups (id),
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now')),
    profile_picture TEXT,
    last_login TEXT,
    UNIQUE (username),
    UNIQUE (email),
    UNIQUE (root_id)
);

-- Edit history
CREATE TABLE IF NOT EXISTS edit_history (
    id INTEGER PRIMARY KEY,
    entity_type TEXT NOT NULL CHECK( entity_type IN ('user','group','entry','section','element') ),
    entity_id INTEGER NOT NULL,
    field_name TEXT,
    operation TEXT NOT NULL CHECK( operation IN ('CREATE', 'UPDATE', 'DELETE', 'MOVE') ),
    old_value TEXT,
    new_value TEXT,
    timestamp TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);
CREATE INDEX IF NOT EXISTS edit_history_entity_index ON edit_history (entity_type, entity_id);
CREATE INDEX IF NOT EXISTS edit_history_timestamp_index ON edit_history (timestamp);
"""


def connect(
    db_path: str | Path = ":memory:",
    *,
    busy_timeout: float = 5.0,
) -> sqlite3.Connection:
    """Open a database connection with vault PRAGMA settings.

    The connection runs in autocommit mode; transactions are opened
    explicitly with :func:`transaction` or :func:`task`.
    """
    db_path_str = str(db_path)
    try:
        conn = sqlite3.connect(
            db_path_str,
            timeout=busy_timeout,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            isolation_level=None,
        )
        conn.execute("PRAGMA foreign_keys = ON")
        if db_path_str != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to open database {db_path_str!r}") from e
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Initialize all tables if they don't exist. Set schema version."""
    try:
        conn.executescript(_DDL)
        conn.execute(
            "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
            (SCHEMA_VERSION,),
        )
        conn.execute(
            "INSERT OR IGNORE INTO meta (key, value) "
            "VALUES ('created_at', strftime('%Y-%m-%dT%H:%M:%f', 'now'))",
        )
    except sqlite3.Error as e:
        raise DatabaseError("Failed to initialize database schema") from e


def check_schema_version(conn: sqlite3.Connection) -> None:
    """Verify the database schema version is compatible."""
    try:
        row = conn.execute(
            "SELECT value FROM meta WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        # meta table doesn't exist - uninitialized DB
        return
    if row is None:
        return
    version = row[0]
    if version != SCHEMA_VERSION:
        raise DatabaseError(
            f"Incompatible schema version: {version} "
            f"(expected {SCHEMA_VERSION})"
        )


# ---------------------------------------------------------------------------
# Transaction scopes
# ---------------------------------------------------------------------------

@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run the block in one write transaction.

    ``BEGIN IMMEDIATE`` takes the write lock up front so two writers
    can never interleave sibling shifts. Inside an already open
    transaction the block simply joins it; the outer scope commits.
    """
    if conn.in_transaction:
        yield conn
        return
    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.Error as e:
        raise StorageError("Failed to begin transaction") from e
    try:
        yield conn
    except BaseException as e:
        logger.debug("Rolling back transaction after %s", type(e).__name__)
        conn.rollback()
        raise
    try:
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StorageError("Failed to commit transaction") from e


@contextmanager
def task(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run several reads against one consistent snapshot."""
    if conn.in_transaction:
        yield conn
        return
    try:
        conn.execute("BEGIN DEFERRED")
    except sqlite3.Error as e:
        raise StorageError("Failed to begin read task") from e
    try:
        yield conn
    finally:
        conn.rollback()


@contextmanager
def savepoint(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run the block inside an open transaction, undoing only its own writes on error."""
    name = f"vault_sp_{next(_savepoint_ids)}"
    _execute(conn, f"SAVEPOINT {name}")
    try:
        yield conn
    except BaseException:
        _execute(conn, f"ROLLBACK TO {name}")
        _execute(conn, f"RELEASE {name}")
        raise
    _execute(conn, f"RELEASE {name}")


# ---------------------------------------------------------------------------
# Query primitives
# ---------------------------------------------------------------------------

def _execute(
    conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()
) -> sqlite3.Cursor:
    try:
        return conn.execute(sql, tuple(params))
    except sqlite3.Error as e:
        raise StorageError(f"Query failed: {sql.split()[0]} ({e})") from e


def one(
    conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()
) -> sqlite3.Row:
    """Execute a query that must return exactly one row."""
    row = _execute(conn, sql, params).fetchone()
    if row is None:
        raise StorageError(f"Query returned no rows: {sql}")
    return row


def one_or_none(
    conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()
) -> sqlite3.Row | None:
    """Execute a query returning at most one row."""
    return _execute(conn, sql, params).fetchone()


def many(
    conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()
) -> list[sqlite3.Row]:
    """Execute a query and return all rows."""
    try:
        return _execute(conn, sql, params).fetchall()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to fetch rows ({e})") from e


def none(
    conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()
) -> None:
    """Execute a statement that returns no rows."""
    _execute(conn, sql, params)


def insert(
    conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()
) -> int:
    """Execute an INSERT and return the new row id."""
    return _execute(conn, sql, params).lastrowid


def exists(conn: sqlite3.Connection, table: str, id: int) -> bool:
    """Check whether a row with the given id exists in ``table``."""
    row = one_or_none(conn, f"SELECT 1 FROM {table} WHERE id = ?", (id,))
    return row is not None
