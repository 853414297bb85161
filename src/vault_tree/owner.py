"""Owner resolution: from any node up to its root group and owning user."""

from __future__ import annotations

import sqlite3

from vault_tree import db as _db
from vault_tree import users as _users
from vault_tree.exceptions import EntityNotFoundError, ParameterError, TreeCycleError
from vault_tree.models import NodeKind, UserModel

# node kind -> (table, parent kind, column holding the parent id)
_PARENTS = {
    NodeKind.ELEMENT: ("elements", NodeKind.SECTION, "section_id"),
    NodeKind.SECTION: ("sections", NodeKind.ENTRY, "entry_id"),
    NodeKind.ENTRY: ("entries", NodeKind.GROUP, "group_id"),
}


def find_group_of(conn: sqlite3.Connection, kind: NodeKind | str, id: int) -> int:
    """Return the group that (transitively) contains the given node."""
    try:
        kind = NodeKind(kind)
    except ValueError:
        raise ParameterError(f"Unknown node kind: {kind!r}") from None
    while kind is not NodeKind.GROUP:
        if kind not in _PARENTS:
            raise ParameterError(f"Cannot resolve the group of a {kind.value}")
        table, parent_kind, column = _PARENTS[kind]
        row = _db.one_or_none(
            conn, f"SELECT {column} FROM {table} WHERE id = ?", (id,)
        )
        if row is None:
            raise EntityNotFoundError(f"{kind.value.capitalize()} not found: {id!r}")
        kind, id = parent_kind, row[0]
    return id


def find_root_group_id(conn: sqlite3.Connection, group_id: int) -> int:
    """Walk ``supergroup_id`` upward until a root group is reached."""
    current = group_id
    seen: set[int] = set()
    while True:
        row = _db.one_or_none(
            conn, "SELECT supergroup_id FROM groups WHERE id = ?", (current,)
        )
        if row is None:
            raise EntityNotFoundError(f"Group not found: {current!r}")
        if row["supergroup_id"] is None:
            return current
        seen.add(current)
        current = row["supergroup_id"]
        if current in seen:
            raise TreeCycleError(f"Cycle detected above group {group_id}")


def get_owner(
    conn: sqlite3.Connection,
    kind: NodeKind | str,
    id: int,
    flat: bool = True,
) -> int | UserModel:
    """Resolve the user owning a node.

    Returns the user id, or the full :class:`UserModel` when ``flat`` is
    false.
    """
    group_id = find_group_of(conn, kind, id)
    root_id = find_root_group_id(conn, group_id)
    user = _users.find_user_by_root(conn, root_id)
    if user is None:
        raise EntityNotFoundError(f"No user owns root group {root_id}")
    return user.id if flat else user


def get_group_owner(conn: sqlite3.Connection, group_id: int) -> int:
    return get_owner(conn, NodeKind.GROUP, group_id)
