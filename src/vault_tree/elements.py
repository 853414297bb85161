"""Elements: the leaf values of the vault tree, ordered inside a section."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from vault_tree import db as _db
from vault_tree import history as _hist
from vault_tree.exceptions import EntityNotFoundError, ParameterError
from vault_tree.models import ElementField, ElementModel, ElementType, parse_field
from vault_tree.ordering import PositionedCollection

logger = logging.getLogger(__name__)


def _destroy_element(conn: sqlite3.Connection, element_id: int) -> None:
    _hist.record_delete(conn, "element", element_id)
    _db.none(conn, "DELETE FROM elements WHERE id = ?", (element_id,))


ELEMENTS = PositionedCollection(
    kind="element",
    table="elements",
    parent_kind="section",
    parent_table="sections",
    parent_column="section_id",
    destroy=_destroy_element,
)


def _element_type(value: Any) -> ElementType:
    try:
        return ElementType(value)
    except ValueError:
        raise ParameterError(f"Invalid element type: {value!r}") from None


def _row_to_element(row: sqlite3.Row) -> ElementModel:
    return ElementModel(
        id=row["id"],
        name=row["name"],
        value=row["value"],
        type=ElementType(row["type"]),
        pos_index=row["pos_index"],
        section_id=row["section_id"],
    )


def get_element_row(conn: sqlite3.Connection, element_id: int) -> sqlite3.Row | None:
    """Get a full element row by ID."""
    return _db.one_or_none(
        conn, "SELECT * FROM elements WHERE id = ?", (element_id,)
    )


def create_element(
    conn: sqlite3.Connection,
    section_id: int,
    name: str,
    value: str = "",
    type: ElementType | int = ElementType.CLEAR_TEXT,
    *,
    pos_index: int | None = None,
) -> ElementModel:
    """Create an element inside a section at ``pos_index`` (default last)."""
    element_type = _element_type(type)
    if not _db.exists(conn, "sections", section_id):
        raise EntityNotFoundError(f"Section not found: {section_id!r}")
    ELEMENTS.resolve_insert_position(ELEMENTS.size(conn, section_id), pos_index)

    element_id = _db.insert(
        conn,
        "INSERT INTO elements (name, value, type, pos_index, section_id) "
        "VALUES (?, ?, ?, NULL, ?)",
        (name, value, int(element_type), section_id),
    )
    ELEMENTS.insert(conn, section_id, element_id, pos_index)
    _hist.record_create(
        conn, "element", element_id,
        {"name": name, "type": int(element_type), "section_id": section_id},
    )
    return find_element(conn, element_id)


def element_exists(conn: sqlite3.Connection, element_id: int) -> bool:
    return _db.exists(conn, "elements", element_id)


def find_element(conn: sqlite3.Connection, element_id: int) -> ElementModel | None:
    row = get_element_row(conn, element_id)
    return _row_to_element(row) if row is not None else None


def list_elements(conn: sqlite3.Connection, section_id: int) -> list[ElementModel]:
    """Return the attached elements of a section in position order."""
    if not _db.exists(conn, "sections", section_id):
        raise EntityNotFoundError(f"Section not found: {section_id!r}")
    rows = _db.many(
        conn,
        "SELECT * FROM elements WHERE section_id = ? AND pos_index IS NOT NULL "
        "ORDER BY pos_index",
        (section_id,),
    )
    return [_row_to_element(row) for row in rows]


def delete_element(conn: sqlite3.Connection, element_id: int) -> None:
    row = get_element_row(conn, element_id)
    if row is None:
        raise EntityNotFoundError(f"Element not found: {element_id!r}")

    if row["pos_index"] is None:
        _destroy_element(conn, element_id)
    else:
        ELEMENTS.remove(conn, row["section_id"], element_id, delete=True)


def set_element_property(
    conn: sqlite3.Connection,
    element_id: int,
    field: ElementField | str,
    new_value: Any,
) -> None:
    """Change one element property.

    ``pos_index`` repositions the element inside its section and
    ``section_id`` moves it to the end of another section, so the
    ordering of both collections stays dense.
    """
    field = parse_field(ElementField, field)
    row = get_element_row(conn, element_id)
    if row is None:
        raise EntityNotFoundError(f"Element not found: {element_id!r}")

    old_position = {"section_id": row["section_id"], "pos_index": row["pos_index"]}
    if field is ElementField.POS_INDEX:
        ELEMENTS.reposition(conn, row["section_id"], element_id, new_value)
        _hist.record_move(
            conn, "element", element_id, old_position,
            {"section_id": row["section_id"], "pos_index": new_value},
        )
        return
    if field is ElementField.SECTION_ID:
        if new_value == row["section_id"]:
            return
        pos = ELEMENTS.move(conn, row["section_id"], element_id, new_value)
        _hist.record_move(
            conn, "element", element_id, old_position,
            {"section_id": new_value, "pos_index": pos},
        )
        return

    if field is ElementField.TYPE:
        new_value = int(_element_type(new_value))
    if field is ElementField.VALUE:
        # secrets never reach the history table
        _hist.record_update(conn, "element", element_id, field.value, None, None)
    else:
        _hist.record_update(
            conn, "element", element_id, field.value, row[field.value], new_value
        )
    _db.none(
        conn,
        f"UPDATE elements SET {field.value} = ? WHERE id = ?",
        (new_value, element_id),
    )
