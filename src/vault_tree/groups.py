"""Groups: the self-recursive folders of the vault tree.

A group owns two independent ordered collections keyed by its id: its
sub-groups (``SUBGROUPS``, stored in ``groups.supergroup_id``) and its
entries (``ENTRIES``, stored in ``entries.group_id``). Operations on one
never renumber the other. Root groups carry ``None`` for both
``supergroup_id`` and ``pos_index``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from vault_tree import db as _db
from vault_tree import entries as _entries
from vault_tree import history as _hist
from vault_tree.exceptions import (
    EntityNotFoundError,
    ParameterError,
    TreeCycleError,
)
from vault_tree.models import GroupField, GroupModel, parse_field
from vault_tree.ordering import PositionedCollection

logger = logging.getLogger(__name__)

ENTRIES = _entries.ENTRIES


def _destroy_group(conn: sqlite3.Connection, group_id: int) -> None:
    for entry_id in ENTRIES.child_ids(conn, group_id):
        ENTRIES.destroy(conn, entry_id)
    for subgroup_id in SUBGROUPS.child_ids(conn, group_id):
        _destroy_group(conn, subgroup_id)
    _hist.record_delete(conn, "group", group_id)
    _db.none(conn, "DELETE FROM groups WHERE id = ?", (group_id,))


def _check_attach(conn: sqlite3.Connection, group_id: int, dest_id: int) -> None:
    """Reject attaching a root group, or a group below itself."""
    row = get_group_row(conn, group_id)
    if row is not None and row["supergroup_id"] is None:
        raise ParameterError(f"Root group {group_id} cannot become a subgroup")

    current: int | None = dest_id
    seen: set[int] = set()
    while current is not None:
        if current == group_id:
            raise TreeCycleError(
                f"Group {group_id} cannot be placed inside itself or one "
                "of its descendants"
            )
        if current in seen:
            raise TreeCycleError(f"Cycle detected above group {dest_id}")
        seen.add(current)
        parent = _db.one_or_none(
            conn, "SELECT supergroup_id FROM groups WHERE id = ?", (current,)
        )
        current = parent["supergroup_id"] if parent is not None else None


SUBGROUPS = PositionedCollection(
    kind="group",
    table="groups",
    parent_kind="group",
    parent_table="groups",
    parent_column="supergroup_id",
    destroy=_destroy_group,
    check_attach=_check_attach,
)


def _row_to_group(
    row: sqlite3.Row, subgroups: tuple = (), entries: tuple = ()
) -> GroupModel:
    return GroupModel(
        id=row["id"],
        name=row["name"],
        icon=row["icon"],
        pos_index=row["pos_index"],
        supergroup_id=row["supergroup_id"],
        subgroups=subgroups,
        entries=entries,
    )


def get_group_row(conn: sqlite3.Connection, group_id: int) -> sqlite3.Row | None:
    """Get a full group row by ID."""
    return _db.one_or_none(conn, "SELECT * FROM groups WHERE id = ?", (group_id,))


def _require_group_row(conn: sqlite3.Connection, group_id: int) -> sqlite3.Row:
    row = get_group_row(conn, group_id)
    if row is None:
        raise EntityNotFoundError(f"Group not found: {group_id!r}")
    return row


def create_group(
    conn: sqlite3.Connection,
    name: str,
    supergroup_id: int | None = None,
    *,
    icon: str | None = None,
    pos_index: int | None = None,
    root: bool = False,
) -> GroupModel:
    """Create a group.

    Root groups skip positioning entirely; every other group is inserted
    into its supergroup's sub-group collection at ``pos_index``
    (default last).
    """
    if root:
        if supergroup_id is not None or pos_index is not None:
            raise ParameterError("A root group has no supergroup or position")
        group_id = _db.insert(
            conn,
            "INSERT INTO groups (name, icon, pos_index, supergroup_id) "
            "VALUES (?, ?, NULL, NULL)",
            (name, icon),
        )
        _hist.record_create(conn, "group", group_id, {"name": name, "root": True})
        return find_group(conn, group_id)

    if supergroup_id is None:
        raise ParameterError("A non-root group needs a supergroup")
    if not _db.exists(conn, "groups", supergroup_id):
        raise EntityNotFoundError(f"Group not found: {supergroup_id!r}")
    SUBGROUPS.resolve_insert_position(SUBGROUPS.size(conn, supergroup_id), pos_index)

    group_id = _db.insert(
        conn,
        "INSERT INTO groups (name, icon, pos_index, supergroup_id) "
        "VALUES (?, ?, NULL, ?)",
        (name, icon, supergroup_id),
    )
    SUBGROUPS.insert(conn, supergroup_id, group_id, pos_index)
    _hist.record_create(
        conn, "group", group_id, {"name": name, "supergroup_id": supergroup_id}
    )
    return find_group(conn, group_id)


def group_exists(conn: sqlite3.Connection, group_id: int) -> bool:
    return _db.exists(conn, "groups", group_id)


def find_group(
    conn: sqlite3.Connection, group_id: int, depth: int = 0
) -> GroupModel | None:
    """Fetch a group.

    ``depth`` controls how many levels of sub-groups are hydrated; ``-1``
    loads the whole subtree. Whenever a group is hydrated at a non-zero
    depth its entries come with their sections and elements.
    """
    row = get_group_row(conn, group_id)
    if row is None:
        return None
    if depth == 0:
        return _row_to_group(row)

    child_depth = depth - 1 if depth > 0 else -1
    subgroups = tuple(
        find_group(conn, slot.id, child_depth)
        for slot in SUBGROUPS.snapshot(conn, group_id)
    )
    entries = tuple(_entries.list_entries(conn, group_id, recursive=True))
    return _row_to_group(row, subgroups, entries)


def list_subgroups(conn: sqlite3.Connection, group_id: int) -> list[GroupModel]:
    """Return the attached sub-groups of a group in position order."""
    _require_group_row(conn, group_id)
    rows = _db.many(
        conn,
        "SELECT * FROM groups WHERE supergroup_id = ? AND pos_index IS NOT NULL "
        "ORDER BY pos_index",
        (group_id,),
    )
    return [_row_to_group(row) for row in rows]


def subgroup_count(conn: sqlite3.Connection, group_id: int) -> int:
    _require_group_row(conn, group_id)
    return SUBGROUPS.size(conn, group_id)


def get_group_property(
    conn: sqlite3.Connection, group_id: int, field: GroupField | str
) -> Any:
    """Read one column of a group; root groups report ``None`` positions."""
    field = parse_field(GroupField, field)
    return _require_group_row(conn, group_id)[field.value]


def delete_group(conn: sqlite3.Connection, group_id: int) -> None:
    """Delete a group, its entries and all of its sub-groups."""
    row = _require_group_row(conn, group_id)

    if row["supergroup_id"] is None:
        owner = _db.one_or_none(
            conn, "SELECT id FROM users WHERE root_id = ?", (group_id,)
        )
        if owner is not None:
            raise ParameterError(
                f"Group {group_id} is the root of user {owner['id']}; "
                "delete the user instead"
            )
        _destroy_group(conn, group_id)
    elif row["pos_index"] is None:
        _destroy_group(conn, group_id)
    else:
        SUBGROUPS.remove(conn, row["supergroup_id"], group_id, delete=True)
    logger.info("Deleted group %d", group_id)


def set_group_property(
    conn: sqlite3.Connection,
    group_id: int,
    field: GroupField | str,
    new_value: Any,
) -> None:
    """Change one group property.

    ``pos_index`` repositions the group among its siblings and
    ``supergroup_id`` moves it (appended) below another group.
    """
    field = parse_field(GroupField, field)
    row = _require_group_row(conn, group_id)

    if field in (GroupField.POS_INDEX, GroupField.SUPERGROUP_ID):
        if row["supergroup_id"] is None:
            raise ParameterError(f"Root group {group_id} has no position")
        old_position = {
            "supergroup_id": row["supergroup_id"], "pos_index": row["pos_index"],
        }
        if field is GroupField.POS_INDEX:
            SUBGROUPS.reposition(conn, row["supergroup_id"], group_id, new_value)
            new_position = {
                "supergroup_id": row["supergroup_id"], "pos_index": new_value,
            }
        else:
            if new_value == row["supergroup_id"]:
                return
            pos = SUBGROUPS.move(conn, row["supergroup_id"], group_id, new_value)
            new_position = {"supergroup_id": new_value, "pos_index": pos}
        _hist.record_move(conn, "group", group_id, old_position, new_position)
        return

    _hist.record_update(
        conn, "group", group_id, field.value, row[field.value], new_value
    )
    _db.none(
        conn,
        f"UPDATE groups SET {field.value} = ? WHERE id = ?",
        (new_value, group_id),
    )


# ---------------------------------------------------------------------------
# Sub-group management
# ---------------------------------------------------------------------------

def add_subgroup(
    conn: sqlite3.Connection,
    group_id: int,
    subgroup_id: int,
    pos_index: int | None = None,
) -> int:
    """Attach a detached group below ``group_id``."""
    return SUBGROUPS.insert(conn, group_id, subgroup_id, pos_index)


def remove_subgroup(
    conn: sqlite3.Connection,
    group_id: int,
    subgroup_id: int,
    delete: bool = False,
) -> None:
    SUBGROUPS.remove(conn, group_id, subgroup_id, delete=delete)


def reposition_subgroup(
    conn: sqlite3.Connection,
    group_id: int,
    subgroup_id: int,
    new_pos: int,
) -> None:
    SUBGROUPS.reposition(conn, group_id, subgroup_id, new_pos)
    _hist.record_move(
        conn, "group", subgroup_id, {"supergroup_id": group_id},
        {"supergroup_id": group_id, "pos_index": new_pos},
    )


def move_subgroup(
    conn: sqlite3.Connection,
    group_id: int,
    subgroup_id: int,
    new_supergroup_id: int,
    new_pos: int | None = None,
) -> None:
    """Move a sub-group below another group, or reposition it in place."""
    pos = SUBGROUPS.move(conn, group_id, subgroup_id, new_supergroup_id, new_pos)
    _hist.record_move(
        conn, "group", subgroup_id, {"supergroup_id": group_id},
        {"supergroup_id": new_supergroup_id, "pos_index": pos},
    )


# ---------------------------------------------------------------------------
# Entry management
# ---------------------------------------------------------------------------

def add_entry(
    conn: sqlite3.Connection,
    group_id: int,
    entry_id: int,
    pos_index: int | None = None,
) -> int:
    """Attach a detached entry to a group."""
    return ENTRIES.insert(conn, group_id, entry_id, pos_index)


def remove_entry(
    conn: sqlite3.Connection,
    group_id: int,
    entry_id: int,
    delete: bool = False,
) -> None:
    ENTRIES.remove(conn, group_id, entry_id, delete=delete)


def reposition_entry(
    conn: sqlite3.Connection,
    group_id: int,
    entry_id: int,
    new_pos: int,
) -> None:
    ENTRIES.reposition(conn, group_id, entry_id, new_pos)
    _hist.record_move(
        conn, "entry", entry_id, {"group_id": group_id},
        {"group_id": group_id, "pos_index": new_pos},
    )


def move_entry(
    conn: sqlite3.Connection,
    group_id: int,
    entry_id: int,
    new_group_id: int,
    new_pos: int | None = None,
) -> None:
    """Move an entry to another group, or reposition it in place."""
    pos = ENTRIES.move(conn, group_id, entry_id, new_group_id, new_pos)
    _hist.record_move(
        conn, "entry", entry_id, {"group_id": group_id},
        {"group_id": new_group_id, "pos_index": pos},
    )
