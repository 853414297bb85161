"""Dense zero-based ordering of sibling collections.

Every ordered collection in the vault (sub-groups of a group, entries of
a group, sections of an entry, elements of a section) is an instance of
:class:`PositionedCollection`. The collection only knows the child table,
the parent table and the parent column; the level modules supply the
cascading ``destroy`` callback and, for groups, an ``check_attach`` hook
that rejects cycles.

All operations take the connection first and never open or close a
transaction. Each one reads a snapshot of the full sibling list once and
computes every shift from it. Because storage enforces
``UNIQUE (parent, pos_index)``, the moving item is parked at ``NULL``
before siblings are shifted, and shifts are written in the order that
never produces a transient duplicate: descending for ``+1``, ascending
for ``-1``.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass

from vault_tree import db as _db
from vault_tree.exceptions import (
    EntityNotFoundError,
    InvalidPositionError,
    ParameterError,
)

logger = logging.getLogger(__name__)

Destroy = Callable[[sqlite3.Connection, int], None]
AttachCheck = Callable[[sqlite3.Connection, int, int], None]


def is_position(value) -> bool:
    """True for plain integers; bools and floats are not positions."""
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class Slot:
    """One member of an ordered collection."""

    id: int
    pos_index: int


@dataclass(frozen=True)
class PositionedCollection:
    """Ordering algorithm for one child kind under one parent kind."""

    kind: str
    table: str
    parent_kind: str
    parent_table: str
    parent_column: str
    destroy: Destroy
    check_attach: AttachCheck | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self, conn: sqlite3.Connection, parent_id: int) -> list[Slot]:
        """Return the attached children of ``parent_id`` ordered by position."""
        rows = _db.many(
            conn,
            f"SELECT id, pos_index FROM {self.table} "
            f"WHERE {self.parent_column} = ? AND pos_index IS NOT NULL "
            "ORDER BY pos_index",
            (parent_id,),
        )
        return [Slot(row["id"], row["pos_index"]) for row in rows]

    def size(self, conn: sqlite3.Connection, parent_id: int) -> int:
        row = _db.one(
            conn,
            f"SELECT COUNT(*) FROM {self.table} "
            f"WHERE {self.parent_column} = ? AND pos_index IS NOT NULL",
            (parent_id,),
        )
        return row[0]

    def child_ids(self, conn: sqlite3.Connection, parent_id: int) -> list[int]:
        """All children of ``parent_id``, detached ones included."""
        rows = _db.many(
            conn,
            f"SELECT id FROM {self.table} WHERE {self.parent_column} = ? "
            "ORDER BY pos_index IS NULL, pos_index, id",
            (parent_id,),
        )
        return [row["id"] for row in rows]

    def check(self, conn: sqlite3.Connection, parent_id: int) -> list[int]:
        """Positions currently held in one collection, in order."""
        return [slot.pos_index for slot in self.snapshot(conn, parent_id)]

    def violations(self, conn: sqlite3.Connection) -> list[tuple[int, list[int]]]:
        """Parents whose attached children are not numbered ``0..n-1``."""
        rows = _db.many(
            conn,
            f"SELECT {self.parent_column} AS parent_id, COUNT(*) AS n, "
            "COUNT(DISTINCT pos_index) AS distinct_n, "
            "MIN(pos_index) AS lo, MAX(pos_index) AS hi "
            f"FROM {self.table} WHERE pos_index IS NOT NULL "
            f"AND {self.parent_column} IS NOT NULL "
            f"GROUP BY {self.parent_column}",
        )
        found = []
        for row in rows:
            n = row["n"]
            if row["distinct_n"] != n or row["lo"] != 0 or row["hi"] != n - 1:
                found.append((row["parent_id"], self.check(conn, row["parent_id"])))
        return found

    def detached(self, conn: sqlite3.Connection) -> list[int]:
        """Children that reference a parent but hold no position."""
        rows = _db.many(
            conn,
            f"SELECT id FROM {self.table} WHERE pos_index IS NULL "
            f"AND {self.parent_column} IS NOT NULL ORDER BY id",
        )
        return [row["id"] for row in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(
        self,
        conn: sqlite3.Connection,
        parent_id: int,
        item_id: int,
        pos_index: int | None = None,
    ) -> int:
        """Attach a detached item at ``pos_index`` (default: append).

        Returns the position the item was placed at.
        """
        self._require_parent(conn, parent_id)
        item = self._require_item(conn, item_id)
        if item["pos_index"] is not None:
            raise ParameterError(
                f"{self.kind.capitalize()} {item_id} is already attached to "
                f"{self.parent_kind} {item['parent_id']}; move it instead"
            )
        slots = self.snapshot(conn, parent_id)
        target = self.resolve_insert_position(len(slots), pos_index)
        if self.check_attach is not None:
            self.check_attach(conn, item_id, parent_id)

        self._shift(conn, [s for s in slots if s.pos_index >= target], +1)
        self._write(conn, item_id, target, parent_id=parent_id)
        return target

    def remove(
        self,
        conn: sqlite3.Connection,
        parent_id: int,
        item_id: int,
        delete: bool = False,
    ) -> int:
        """Take an item out of the collection, closing the gap.

        With ``delete`` the item and all its descendants are destroyed,
        otherwise it is left detached. Returns the former position.
        """
        self._require_item(conn, item_id)
        slots = self.snapshot(conn, parent_id)
        slot = self._find_slot(slots, item_id, parent_id)

        self._write(conn, item_id, None)
        self._shift(conn, [s for s in slots if s.pos_index > slot.pos_index], -1)
        if delete:
            self.destroy(conn, item_id)
        return slot.pos_index

    def reposition(
        self,
        conn: sqlite3.Connection,
        parent_id: int,
        item_id: int,
        new_pos: int,
    ) -> None:
        """Move an item to ``new_pos`` inside the same collection."""
        self._require_parent(conn, parent_id)
        slots = self.snapshot(conn, parent_id)
        if not is_position(new_pos) or new_pos < 0 or new_pos >= len(slots):
            raise InvalidPositionError(
                f"Target position {new_pos!r} invalid for {self.parent_kind} "
                f"{parent_id} with {len(slots)} {self.kind}(s)"
            )
        self._require_item(conn, item_id)
        slot = self._find_slot(slots, item_id, parent_id)
        old_pos = slot.pos_index
        if new_pos == old_pos:
            return

        self._write(conn, item_id, None)
        if old_pos < new_pos:
            between = [s for s in slots if old_pos < s.pos_index <= new_pos]
            self._shift(conn, between, -1)
        else:
            between = [s for s in slots if new_pos <= s.pos_index < old_pos]
            self._shift(conn, between, +1)
        self._write(conn, item_id, new_pos)

    def move(
        self,
        conn: sqlite3.Connection,
        source_id: int,
        item_id: int,
        dest_id: int,
        new_pos: int | None = None,
    ) -> int:
        """Move an item to another parent (or reposition it in place).

        Returns the item's final position.
        """
        if source_id == dest_id:
            if new_pos is None:
                raise ParameterError(
                    f"New position must be given when moving a {self.kind} "
                    f"inside the same {self.parent_kind}"
                )
            self.reposition(conn, source_id, item_id, new_pos)
            return new_pos

        self._require_item(conn, item_id)
        self._require_parent(conn, dest_id)
        self._find_slot(self.snapshot(conn, source_id), item_id, source_id)
        target = self.resolve_insert_position(self.size(conn, dest_id), new_pos)
        if self.check_attach is not None:
            self.check_attach(conn, item_id, dest_id)

        self.remove(conn, source_id, item_id, delete=False)
        self.insert(conn, dest_id, item_id, target)
        logger.info(
            "Moved %s %d from %s %d to %s %d at %d",
            self.kind, item_id, self.parent_kind, source_id,
            self.parent_kind, dest_id, target,
        )
        return target

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def resolve_insert_position(self, size: int, pos_index: int | None) -> int:
        """Validate an insert target against a collection of ``size``."""
        if pos_index is None:
            return size
        if not is_position(pos_index) or pos_index < 0 or pos_index > size:
            raise InvalidPositionError(
                f"Target position {pos_index!r} invalid for {self.parent_kind} "
                f"with {size} {self.kind}(s)"
            )
        return pos_index

    def _require_parent(self, conn: sqlite3.Connection, parent_id: int) -> None:
        if not _db.exists(conn, self.parent_table, parent_id):
            raise EntityNotFoundError(
                f"{self.parent_kind.capitalize()} not found: {parent_id!r}"
            )

    def _require_item(self, conn: sqlite3.Connection, item_id: int) -> sqlite3.Row:
        row = _db.one_or_none(
            conn,
            f"SELECT id, pos_index, {self.parent_column} AS parent_id "
            f"FROM {self.table} WHERE id = ?",
            (item_id,),
        )
        if row is None:
            raise EntityNotFoundError(
                f"{self.kind.capitalize()} not found: {item_id!r}"
            )
        return row

    def _find_slot(self, slots: list[Slot], item_id: int, parent_id: int) -> Slot:
        for slot in slots:
            if slot.id == item_id:
                return slot
        raise EntityNotFoundError(
            f"{self.kind.capitalize()} {item_id} is not part of "
            f"{self.parent_kind} {parent_id}"
        )

    def _shift(self, conn: sqlite3.Connection, slots: list[Slot], delta: int) -> None:
        ordered = sorted(slots, key=lambda s: s.pos_index, reverse=delta > 0)
        for slot in ordered:
            self._write(conn, slot.id, slot.pos_index + delta)
        if ordered:
            logger.debug(
                "Shifted %d %s(s) by %+d", len(ordered), self.kind, delta
            )

    def _write(
        self,
        conn: sqlite3.Connection,
        item_id: int,
        pos_index: int | None,
        *,
        parent_id: int | None = None,
    ) -> None:
        if parent_id is None:
            _db.none(
                conn,
                f"UPDATE {self.table} SET pos_index = ? WHERE id = ?",
                (pos_index, item_id),
            )
        else:
            _db.none(
                conn,
                f"UPDATE {self.table} SET {self.parent_column} = ?, "
                "pos_index = ? WHERE id = ?",
                (parent_id, pos_index, item_id),
            )
