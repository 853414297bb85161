"""Integrity validation for vault-tree."""

from __future__ import annotations

import sqlite3

from vault_tree import db as _db
from vault_tree.elements import ELEMENTS
from vault_tree.entries import ENTRIES
from vault_tree.groups import SUBGROUPS
from vault_tree.models import Severity, ValidationResult
from vault_tree.ordering import PositionedCollection
from vault_tree.sections import SECTIONS

COLLECTIONS: tuple[PositionedCollection, ...] = (
    SUBGROUPS, ENTRIES, SECTIONS, ELEMENTS,
)


def validate_all(conn: sqlite3.Connection) -> list[ValidationResult]:
    """Run all validation rules."""
    results: list[ValidationResult] = []
    results.extend(_val_ord_001(conn))
    results.extend(_val_ord_002(conn))
    results.extend(_val_ref_001(conn))
    results.extend(_val_tree_001(conn))
    results.extend(_val_root_001(conn))
    return results


def validate_group(
    conn: sqlite3.Connection, group_id: int
) -> list[ValidationResult]:
    """Check both ordered collections of one group."""
    results: list[ValidationResult] = []
    for collection in (SUBGROUPS, ENTRIES):
        positions = collection.check(conn, group_id)
        if positions != list(range(len(positions))):
            results.append(_density_result(collection, group_id, positions))
    return results


def _density_result(
    collection: PositionedCollection, parent_id: int, positions: list[int]
) -> ValidationResult:
    return ValidationResult(
        rule_id="VAL-ORD-001",
        severity=Severity.ERROR.value,
        entity_type=collection.parent_kind,
        entity_id=parent_id,
        message=(
            f"{collection.kind.capitalize()} positions are not dense: "
            f"{positions}"
        ),
        details={"collection": collection.kind, "positions": positions},
    )


def _val_ord_001(conn: sqlite3.Connection) -> list[ValidationResult]:
    """Every ordered collection is numbered 0..n-1."""
    results = []
    for collection in COLLECTIONS:
        for parent_id, positions in collection.violations(conn):
            results.append(_density_result(collection, parent_id, positions))
    return results


def _val_ord_002(conn: sqlite3.Connection) -> list[ValidationResult]:
    """Items removed without delete and never re-inserted."""
    results = []
    for collection in COLLECTIONS:
        for item_id in collection.detached(conn):
            results.append(ValidationResult(
                rule_id="VAL-ORD-002",
                severity=Severity.WARNING.value,
                entity_type=collection.kind,
                entity_id=item_id,
                message=f"{collection.kind.capitalize()} is detached from its parent",
                details=None,
            ))
    return results


def _val_ref_001(conn: sqlite3.Connection) -> list[ValidationResult]:
    """Every non-root node references an existing parent."""
    results = []
    for collection in COLLECTIONS:
        rows = _db.many(
            conn,
            f"SELECT c.id, c.{collection.parent_column} AS parent_id "
            f"FROM {collection.table} c LEFT JOIN {collection.parent_table} p "
            f"ON c.{collection.parent_column} = p.id "
            f"WHERE c.{collection.parent_column} IS NOT NULL AND p.id IS NULL",
        )
        for row in rows:
            results.append(ValidationResult(
                rule_id="VAL-REF-001",
                severity=Severity.ERROR.value,
                entity_type=collection.kind,
                entity_id=row["id"],
                message=(
                    f"{collection.kind.capitalize()} references missing "
                    f"{collection.parent_kind} {row['parent_id']}"
                ),
                details={"parent_id": row["parent_id"]},
            ))
    return results


def _val_tree_001(conn: sqlite3.Connection) -> list[ValidationResult]:
    """Every group is reachable from a root group (no cycles)."""
    rows = _db.many(
        conn,
        "WITH RECURSIVE reachable(id) AS ("
        "  SELECT id FROM groups WHERE supergroup_id IS NULL"
        "  UNION"
        "  SELECT g.id FROM groups g JOIN reachable r ON g.supergroup_id = r.id"
        ") "
        "SELECT id FROM groups WHERE id NOT IN (SELECT id FROM reachable) "
        "ORDER BY id",
    )
    return [
        ValidationResult(
            rule_id="VAL-TREE-001",
            severity=Severity.ERROR.value,
            entity_type="group",
            entity_id=row["id"],
            message="Group is not reachable from any root group",
            details=None,
        )
        for row in rows
    ]


def _val_root_001(conn: sqlite3.Connection) -> list[ValidationResult]:
    """Every root group belongs to a user."""
    rows = _db.many(
        conn,
        "SELECT g.id FROM groups g LEFT JOIN users u ON u.root_id = g.id "
        "WHERE g.supergroup_id IS NULL AND u.id IS NULL ORDER BY g.id",
    )
    return [
        ValidationResult(
            rule_id="VAL-ROOT-001",
            severity=Severity.ERROR.value,
            entity_type="group",
            entity_id=row["id"],
            message="Root group is not owned by any user",
            details=None,
        )
        for row in rows
    ]
