"""Entries: credential records ordered inside a group, holding sections."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from typing import Any

from vault_tree import db as _db
from vault_tree import history as _hist
from vault_tree import sections as _sections
from vault_tree.exceptions import EntityNotFoundError, ParameterError
from vault_tree.models import EntryField, EntryModel, parse_field
from vault_tree.ordering import PositionedCollection

logger = logging.getLogger(__name__)

SECTIONS = _sections.SECTIONS


def _destroy_entry(conn: sqlite3.Connection, entry_id: int) -> None:
    for section_id in SECTIONS.child_ids(conn, entry_id):
        SECTIONS.destroy(conn, section_id)
    _hist.record_delete(conn, "entry", entry_id)
    _db.none(conn, "DELETE FROM entries WHERE id = ?", (entry_id,))


ENTRIES = PositionedCollection(
    kind="entry",
    table="entries",
    parent_kind="group",
    parent_table="groups",
    parent_column="group_id",
    destroy=_destroy_entry,
)


def _tags(tags: Iterable[str] | None) -> frozenset[str]:
    if tags is None:
        return frozenset()
    if isinstance(tags, str):
        raise ParameterError("Tags must be a collection of strings, not a string")
    return frozenset(str(tag) for tag in tags)


def _row_to_entry(row: sqlite3.Row, sections: tuple = ()) -> EntryModel:
    return EntryModel(
        id=row["id"],
        name=row["name"],
        tags=row["tags"] or frozenset(),
        icon=row["icon"],
        pos_index=row["pos_index"],
        group_id=row["group_id"],
        sections=sections,
    )


def get_entry_row(conn: sqlite3.Connection, entry_id: int) -> sqlite3.Row | None:
    """Get a full entry row by ID."""
    return _db.one_or_none(conn, "SELECT * FROM entries WHERE id = ?", (entry_id,))


def create_entry(
    conn: sqlite3.Connection,
    group_id: int,
    name: str,
    *,
    tags: Iterable[str] | None = None,
    icon: str | None = None,
    pos_index: int | None = None,
) -> EntryModel:
    """Create an entry inside a group at ``pos_index`` (default last)."""
    tag_set = _tags(tags)
    if not _db.exists(conn, "groups", group_id):
        raise EntityNotFoundError(f"Group not found: {group_id!r}")
    ENTRIES.resolve_insert_position(ENTRIES.size(conn, group_id), pos_index)

    entry_id = _db.insert(
        conn,
        "INSERT INTO entries (name, tags, icon, pos_index, group_id) "
        "VALUES (?, ?, ?, NULL, ?)",
        (name, tag_set, icon, group_id),
    )
    ENTRIES.insert(conn, group_id, entry_id, pos_index)
    _hist.record_create(
        conn, "entry", entry_id,
        {"name": name, "tags": tag_set, "group_id": group_id},
    )
    return find_entry(conn, entry_id)


def entry_exists(conn: sqlite3.Connection, entry_id: int) -> bool:
    return _db.exists(conn, "entries", entry_id)


def find_entry(
    conn: sqlite3.Connection, entry_id: int, recursive: bool = False
) -> EntryModel | None:
    """Fetch an entry; ``recursive`` hydrates sections and their elements."""
    row = get_entry_row(conn, entry_id)
    if row is None:
        return None
    sections = (
        tuple(_sections.list_sections(conn, entry_id, recursive=True))
        if recursive else ()
    )
    return _row_to_entry(row, sections)


def list_entries(
    conn: sqlite3.Connection, group_id: int, recursive: bool = False
) -> list[EntryModel]:
    """Return the attached entries of a group in position order."""
    if not _db.exists(conn, "groups", group_id):
        raise EntityNotFoundError(f"Group not found: {group_id!r}")
    rows = _db.many(
        conn,
        "SELECT * FROM entries WHERE group_id = ? AND pos_index IS NOT NULL "
        "ORDER BY pos_index",
        (group_id,),
    )
    if not recursive:
        return [_row_to_entry(row) for row in rows]
    return [
        _row_to_entry(
            row, tuple(_sections.list_sections(conn, row["id"], recursive=True))
        )
        for row in rows
    ]


def delete_entry(conn: sqlite3.Connection, entry_id: int) -> None:
    """Delete an entry with all of its sections and elements."""
    row = get_entry_row(conn, entry_id)
    if row is None:
        raise EntityNotFoundError(f"Entry not found: {entry_id!r}")

    if row["pos_index"] is None:
        _destroy_entry(conn, entry_id)
    else:
        ENTRIES.remove(conn, row["group_id"], entry_id, delete=True)
    logger.info("Deleted entry %d", entry_id)


def set_entry_property(
    conn: sqlite3.Connection,
    entry_id: int,
    field: EntryField | str,
    new_value: Any,
) -> None:
    """Change one entry property.

    ``pos_index`` repositions the entry inside its group and ``group_id``
    moves it to the end of another group.
    """
    field = parse_field(EntryField, field)
    row = get_entry_row(conn, entry_id)
    if row is None:
        raise EntityNotFoundError(f"Entry not found: {entry_id!r}")

    old_position = {"group_id": row["group_id"], "pos_index": row["pos_index"]}
    if field is EntryField.POS_INDEX:
        ENTRIES.reposition(conn, row["group_id"], entry_id, new_value)
        _hist.record_move(
            conn, "entry", entry_id, old_position,
            {"group_id": row["group_id"], "pos_index": new_value},
        )
        return
    if field is EntryField.GROUP_ID:
        if new_value == row["group_id"]:
            return
        pos = ENTRIES.move(conn, row["group_id"], entry_id, new_value)
        _hist.record_move(
            conn, "entry", entry_id, old_position,
            {"group_id": new_value, "pos_index": pos},
        )
        return

    old_value = row[field.value]
    if field is EntryField.TAGS:
        new_value = _tags(new_value)
        old_value = old_value or frozenset()
    _hist.record_update(conn, "entry", entry_id, field.value, old_value, new_value)
    _db.none(
        conn,
        f"UPDATE entries SET {field.value} = ? WHERE id = ?",
        (new_value, entry_id),
    )


# ---------------------------------------------------------------------------
# Section management
# ---------------------------------------------------------------------------

def add_section(
    conn: sqlite3.Connection,
    entry_id: int,
    section_id: int,
    pos_index: int | None = None,
) -> int:
    """Attach a detached section to an entry."""
    return SECTIONS.insert(conn, entry_id, section_id, pos_index)


def remove_section(
    conn: sqlite3.Connection,
    entry_id: int,
    section_id: int,
    delete: bool = False,
) -> None:
    SECTIONS.remove(conn, entry_id, section_id, delete=delete)


def reposition_section(
    conn: sqlite3.Connection,
    entry_id: int,
    section_id: int,
    new_pos: int,
) -> None:
    SECTIONS.reposition(conn, entry_id, section_id, new_pos)
    _hist.record_move(
        conn, "section", section_id, {"entry_id": entry_id},
        {"entry_id": entry_id, "pos_index": new_pos},
    )


def move_section(
    conn: sqlite3.Connection,
    entry_id: int,
    section_id: int,
    new_entry_id: int,
    new_pos: int | None = None,
) -> None:
    """Move a section to another entry, or reposition it in place."""
    pos = SECTIONS.move(conn, entry_id, section_id, new_entry_id, new_pos)
    _hist.record_move(
        conn, "section", section_id, {"entry_id": entry_id},
        {"entry_id": new_entry_id, "pos_index": pos},
    )
