"""Sections: ordered regions of an entry, each holding ordered elements."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from vault_tree import db as _db
from vault_tree import elements as _elements
from vault_tree import history as _hist
from vault_tree.exceptions import EntityNotFoundError
from vault_tree.models import SectionField, SectionModel, parse_field
from vault_tree.ordering import PositionedCollection

logger = logging.getLogger(__name__)

ELEMENTS = _elements.ELEMENTS


def _destroy_section(conn: sqlite3.Connection, section_id: int) -> None:
    for element_id in ELEMENTS.child_ids(conn, section_id):
        ELEMENTS.destroy(conn, element_id)
    _hist.record_delete(conn, "section", section_id)
    _db.none(conn, "DELETE FROM sections WHERE id = ?", (section_id,))


SECTIONS = PositionedCollection(
    kind="section",
    table="sections",
    parent_kind="entry",
    parent_table="entries",
    parent_column="entry_id",
    destroy=_destroy_section,
)


def _row_to_section(
    row: sqlite3.Row, elements: tuple = ()
) -> SectionModel:
    return SectionModel(
        id=row["id"],
        name=row["name"],
        pos_index=row["pos_index"],
        entry_id=row["entry_id"],
        elements=elements,
    )


def get_section_row(conn: sqlite3.Connection, section_id: int) -> sqlite3.Row | None:
    """Get a full section row by ID."""
    return _db.one_or_none(
        conn, "SELECT * FROM sections WHERE id = ?", (section_id,)
    )


def create_section(
    conn: sqlite3.Connection,
    entry_id: int,
    name: str,
    *,
    pos_index: int | None = None,
) -> SectionModel:
    """Create a section inside an entry at ``pos_index`` (default last)."""
    if not _db.exists(conn, "entries", entry_id):
        raise EntityNotFoundError(f"Entry not found: {entry_id!r}")
    SECTIONS.resolve_insert_position(SECTIONS.size(conn, entry_id), pos_index)

    section_id = _db.insert(
        conn,
        "INSERT INTO sections (name, pos_index, entry_id) VALUES (?, NULL, ?)",
        (name, entry_id),
    )
    SECTIONS.insert(conn, entry_id, section_id, pos_index)
    _hist.record_create(
        conn, "section", section_id, {"name": name, "entry_id": entry_id}
    )
    return find_section(conn, section_id)


def section_exists(conn: sqlite3.Connection, section_id: int) -> bool:
    return _db.exists(conn, "sections", section_id)


def find_section(
    conn: sqlite3.Connection, section_id: int, recursive: bool = False
) -> SectionModel | None:
    """Fetch a section, with its elements when ``recursive`` is set."""
    row = get_section_row(conn, section_id)
    if row is None:
        return None
    elements = tuple(_elements.list_elements(conn, section_id)) if recursive else ()
    return _row_to_section(row, elements)


def list_sections(
    conn: sqlite3.Connection, entry_id: int, recursive: bool = False
) -> list[SectionModel]:
    """Return the attached sections of an entry in position order."""
    if not _db.exists(conn, "entries", entry_id):
        raise EntityNotFoundError(f"Entry not found: {entry_id!r}")
    rows = _db.many(
        conn,
        "SELECT * FROM sections WHERE entry_id = ? AND pos_index IS NOT NULL "
        "ORDER BY pos_index",
        (entry_id,),
    )
    if not recursive:
        return [_row_to_section(row) for row in rows]
    return [
        _row_to_section(row, tuple(_elements.list_elements(conn, row["id"])))
        for row in rows
    ]


def delete_section(conn: sqlite3.Connection, section_id: int) -> None:
    """Delete a section and all of its elements."""
    row = get_section_row(conn, section_id)
    if row is None:
        raise EntityNotFoundError(f"Section not found: {section_id!r}")

    if row["pos_index"] is None:
        _destroy_section(conn, section_id)
    else:
        SECTIONS.remove(conn, row["entry_id"], section_id, delete=True)
    logger.info("Deleted section %d", section_id)


def set_section_property(
    conn: sqlite3.Connection,
    section_id: int,
    field: SectionField | str,
    new_value: Any,
) -> None:
    field = parse_field(SectionField, field)
    row = get_section_row(conn, section_id)
    if row is None:
        raise EntityNotFoundError(f"Section not found: {section_id!r}")

    old_position = {"entry_id": row["entry_id"], "pos_index": row["pos_index"]}
    if field is SectionField.POS_INDEX:
        SECTIONS.reposition(conn, row["entry_id"], section_id, new_value)
        _hist.record_move(
            conn, "section", section_id, old_position,
            {"entry_id": row["entry_id"], "pos_index": new_value},
        )
        return
    if field is SectionField.ENTRY_ID:
        if new_value == row["entry_id"]:
            return
        pos = SECTIONS.move(conn, row["entry_id"], section_id, new_value)
        _hist.record_move(
            conn, "section", section_id, old_position,
            {"entry_id": new_value, "pos_index": pos},
        )
        return

    _hist.record_update(
        conn, "section", section_id, field.value, row[field.value], new_value
    )
    _db.none(
        conn,
        f"UPDATE sections SET {field.value} = ? WHERE id = ?",
        (new_value, section_id),
    )


# ---------------------------------------------------------------------------
# Element management
# ---------------------------------------------------------------------------

def add_element(
    conn: sqlite3.Connection,
    section_id: int,
    element_id: int,
    pos_index: int | None = None,
) -> int:
    """Attach a detached element to a section."""
    return ELEMENTS.insert(conn, section_id, element_id, pos_index)


def remove_element(
    conn: sqlite3.Connection,
    section_id: int,
    element_id: int,
    delete: bool = False,
) -> None:
    """Take an element out of a section, deleting it when ``delete`` is set."""
    ELEMENTS.remove(conn, section_id, element_id, delete=delete)


def reposition_element(
    conn: sqlite3.Connection,
    section_id: int,
    element_id: int,
    new_pos: int,
) -> None:
    ELEMENTS.reposition(conn, section_id, element_id, new_pos)
    _hist.record_move(
        conn, "element", element_id, {"section_id": section_id},
        {"section_id": section_id, "pos_index": new_pos},
    )


def move_element(
    conn: sqlite3.Connection,
    section_id: int,
    element_id: int,
    new_section_id: int,
    new_pos: int | None = None,
) -> None:
    """Move an element to another section, or reposition it in place."""
    pos = ELEMENTS.move(conn, section_id, element_id, new_section_id, new_pos)
    _hist.record_move(
        conn, "element", element_id, {"section_id": section_id},
        {"section_id": new_section_id, "pos_index": pos},
    )
