"""Edit history recording and querying for vault-tree."""

from __future__ import annotations

import json
import sqlite3
from typing import Any

from vault_tree import db as _db
from vault_tree.models import EditRecord


def _encode(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Cannot record {type(value).__name__} in history")


def _dump(value: Any) -> str:
    return json.dumps(value, default=_encode)


def record_create(
    conn: sqlite3.Connection,
    entity_type: str,
    entity_id: int,
    new_value: dict | None = None,
) -> None:
    """Record a CREATE operation in edit history."""
    _db.none(
        conn,
        "INSERT INTO edit_history (entity_type, entity_id, operation, new_value) "
        "VALUES (?, ?, 'CREATE', ?)",
        (entity_type, entity_id, _dump(new_value) if new_value else None),
    )


def record_update(
    conn: sqlite3.Connection,
    entity_type: str,
    entity_id: int,
    field_name: str,
    old_value: Any,
    new_value: Any,
) -> None:
    """Record an UPDATE operation in edit history."""
    _db.none(
        conn,
        "INSERT INTO edit_history "
        "(entity_type, entity_id, field_name, operation, old_value, new_value) "
        "VALUES (?, ?, ?, 'UPDATE', ?, ?)",
        (entity_type, entity_id, field_name, _dump(old_value), _dump(new_value)),
    )


def record_move(
    conn: sqlite3.Connection,
    entity_type: str,
    entity_id: int,
    old_position: dict,
    new_position: dict,
) -> None:
    """Record a MOVE (reposition or reparent) in edit history."""
    _db.none(
        conn,
        "INSERT INTO edit_history "
        "(entity_type, entity_id, operation, old_value, new_value) "
        "VALUES (?, ?, 'MOVE', ?, ?)",
        (entity_type, entity_id, _dump(old_position), _dump(new_position)),
    )


def record_delete(
    conn: sqlite3.Connection,
    entity_type: str,
    entity_id: int,
    old_value: dict | None = None,
) -> None:
    """Record a DELETE operation in edit history."""
    _db.none(
        conn,
        "INSERT INTO edit_history (entity_type, entity_id, operation, old_value) "
        "VALUES (?, ?, 'DELETE', ?)",
        (entity_type, entity_id, _dump(old_value) if old_value else None),
    )


def query_history(
    conn: sqlite3.Connection,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    since: str | None = None,
    operation: str | None = None,
) -> list[EditRecord]:
    """Query edit history with optional filters."""
    clauses: list[str] = []
    params: list[Any] = []

    if entity_type is not None:
        clauses.append("entity_type = ?")
        params.append(entity_type)
    if entity_id is not None:
        clauses.append("entity_id = ?")
        params.append(entity_id)
    if since is not None:
        clauses.append("timestamp > ?")
        params.append(since)
    if operation is not None:
        clauses.append("operation = ?")
        params.append(operation)

    where = " AND ".join(clauses) if clauses else "1=1"
    sql = f"SELECT * FROM edit_history WHERE {where} ORDER BY timestamp ASC, id ASC"

    rows = _db.many(conn, sql, params)
    return [
        EditRecord(
            id=row["id"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            field_name=row["field_name"],
            operation=row["operation"],
            old_value=row["old_value"],
            new_value=row["new_value"],
            timestamp=row["timestamp"],
        )
        for row in rows
    ]
