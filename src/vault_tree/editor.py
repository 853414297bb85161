"""VaultEditor: main entry point for the vault-tree library."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Generator, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

from vault_tree import db as _db
from vault_tree import elements as _elements
from vault_tree import entries as _entries
from vault_tree import groups as _groups
from vault_tree import history as _hist
from vault_tree import owner as _owner
from vault_tree import sections as _sections
from vault_tree import users as _users
from vault_tree import validator as _validator
from vault_tree.config import VaultConfig
from vault_tree.exceptions import EntityNotFoundError
from vault_tree.models import (
    EditRecord,
    ElementField,
    ElementModel,
    ElementType,
    EntryField,
    EntryModel,
    GroupField,
    GroupModel,
    NodeKind,
    SectionField,
    SectionModel,
    UserField,
    UserModel,
    UserRole,
    ValidationResult,
)

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])

# Sentinel for "no change" in update methods
_UNSET: Any = type("_UNSET", (), {"__repr__": lambda self: "..."})()


def _modifies_db(method: _F) -> _F:
    """Decorator: wraps mutation methods in a transaction (a savepoint inside a batch)."""

    @functools.wraps(method)
    def wrapper(self: VaultEditor, *args: Any, **kwargs: Any) -> Any:
        if self._in_batch:
            with _db.savepoint(self._conn):
                return method(self, *args, **kwargs)
        with _db.transaction(self._conn):
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def _found(value: Any, kind: str, id: int) -> Any:
    if value is None:
        raise EntityNotFoundError(f"{kind} not found: {id!r}")
    return value


class VaultEditor:
    """A programmatic API for editing vault trees.

    Every mutating method runs in its own ``BEGIN IMMEDIATE`` transaction,
    or joins the one opened by :meth:`batch`.
    """

    def __init__(
        self, db_path: str | Path = ":memory:", *, busy_timeout: float = 5.0
    ) -> None:
        self._db_path = str(db_path)
        self._conn = _db.connect(db_path, busy_timeout=busy_timeout)
        _db.check_schema_version(self._conn)
        _db.init_db(self._conn)
        self._in_batch = False
        self._batch_depth = 0

    @classmethod
    def from_config(cls, config: VaultConfig) -> VaultEditor:
        return cls(config.db_path, busy_timeout=config.busy_timeout)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> VaultEditor:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Batch context manager
    # ------------------------------------------------------------------

    @contextmanager
    def batch(self) -> Generator[None, None, None]:
        """Group multiple mutations into a single transaction.

        An exception rolls back everything done since the batch was
        entered. A nested batch runs in a savepoint of the outer one, so
        its failure leaves the outer batch's earlier writes in place.
        """
        if self._batch_depth:
            self._batch_depth += 1
            try:
                with _db.savepoint(self._conn):
                    yield
            finally:
                self._batch_depth -= 1
            return

        self._batch_depth = 1
        self._in_batch = True
        try:
            with _db.transaction(self._conn):
                yield
        finally:
            self._batch_depth = 0
            self._in_batch = False

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @_modifies_db
    def create_user(
        self,
        username: str,
        email: str,
        *,
        display_name: str | None = None,
        forename: str | None = None,
        surname: str | None = None,
        role: UserRole | int = UserRole.NORMAL,
        enabled: bool = False,
        profile_picture: str | None = None,
    ) -> UserModel:
        return _users.create_user(
            self._conn, username, email,
            display_name=display_name, forename=forename, surname=surname,
            role=role, enabled=enabled, profile_picture=profile_picture,
        )

    def get_user(self, user_id: int) -> UserModel:
        return _found(_users.find_user(self._conn, user_id), "User", user_id)

    def user_exists(self, user_id: int) -> bool:
        return _users.user_exists(self._conn, user_id)

    def get_user_property(self, user_id: int, field: UserField | str) -> Any:
        return _users.get_user_property(self._conn, user_id, field)

    @_modifies_db
    def set_user_property(
        self, user_id: int, field: UserField | str, value: Any
    ) -> None:
        _users.set_user_property(self._conn, user_id, field, value)

    @_modifies_db
    def update_user(
        self,
        user_id: int,
        *,
        email: Any = _UNSET,
        display_name: Any = _UNSET,
        forename: Any = _UNSET,
        surname: Any = _UNSET,
        role: Any = _UNSET,
        enabled: Any = _UNSET,
        profile_picture: Any = _UNSET,
    ) -> UserModel:
        changes = {
            UserField.EMAIL: email,
            UserField.DISPLAY_NAME: display_name,
            UserField.FORENAME: forename,
            UserField.SURNAME: surname,
            UserField.ROLE: role,
            UserField.ENABLED: enabled,
            UserField.PROFILE_PICTURE: profile_picture,
        }
        for field, value in changes.items():
            if value is not _UNSET:
                _users.set_user_property(self._conn, user_id, field, value)
        return self.get_user(user_id)

    @_modifies_db
    def enable_user(self, user_id: int) -> None:
        _users.enable_user(self._conn, user_id)

    @_modifies_db
    def disable_user(self, user_id: int) -> None:
        _users.disable_user(self._conn, user_id)

    @_modifies_db
    def record_login(self, user_id: int) -> str:
        """Stamp the user's last login time; disabled users are refused."""
        return _users.record_login(self._conn, user_id)

    @_modifies_db
    def delete_user(self, user_id: int) -> None:
        _users.delete_user(self._conn, user_id)

    def get_owner(
        self, kind: NodeKind | str, id: int, flat: bool = True
    ) -> int | UserModel:
        """Resolve the user owning any group, entry, section or element."""
        with _db.task(self._conn):
            return _owner.get_owner(self._conn, kind, id, flat=flat)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    @_modifies_db
    def create_group(
        self,
        name: str,
        supergroup_id: int,
        *,
        icon: str | None = None,
        pos_index: int | None = None,
    ) -> GroupModel:
        return _groups.create_group(
            self._conn, name, supergroup_id, icon=icon, pos_index=pos_index
        )

    def get_group(self, group_id: int, depth: int = 0) -> GroupModel:
        with _db.task(self._conn):
            group = _groups.find_group(self._conn, group_id, depth)
        return _found(group, "Group", group_id)

    def group_exists(self, group_id: int) -> bool:
        return _groups.group_exists(self._conn, group_id)

    def list_subgroups(self, group_id: int) -> list[GroupModel]:
        return _groups.list_subgroups(self._conn, group_id)

    def list_entries(
        self, group_id: int, recursive: bool = False
    ) -> list[EntryModel]:
        with _db.task(self._conn):
            return _entries.list_entries(self._conn, group_id, recursive)

    def subgroup_count(self, group_id: int) -> int:
        return _groups.subgroup_count(self._conn, group_id)

    def get_group_property(self, group_id: int, field: GroupField | str) -> Any:
        return _groups.get_group_property(self._conn, group_id, field)

    def get_group_owner(self, group_id: int) -> int:
        with _db.task(self._conn):
            return _owner.get_group_owner(self._conn, group_id)

    @_modifies_db
    def delete_group(self, group_id: int) -> None:
        _groups.delete_group(self._conn, group_id)

    @_modifies_db
    def set_group_property(
        self, group_id: int, field: GroupField | str, value: Any
    ) -> None:
        _groups.set_group_property(self._conn, group_id, field, value)

    @_modifies_db
    def update_group(
        self, group_id: int, *, name: Any = _UNSET, icon: Any = _UNSET
    ) -> GroupModel:
        if name is not _UNSET:
            _groups.set_group_property(self._conn, group_id, GroupField.NAME, name)
        if icon is not _UNSET:
            _groups.set_group_property(self._conn, group_id, GroupField.ICON, icon)
        return self.get_group(group_id)

    @_modifies_db
    def add_subgroup(
        self, group_id: int, subgroup_id: int, pos_index: int | None = None
    ) -> int:
        return _groups.add_subgroup(self._conn, group_id, subgroup_id, pos_index)

    @_modifies_db
    def remove_subgroup(
        self, group_id: int, subgroup_id: int, delete: bool = False
    ) -> None:
        _groups.remove_subgroup(self._conn, group_id, subgroup_id, delete)

    @_modifies_db
    def reposition_subgroup(
        self, group_id: int, subgroup_id: int, new_pos: int
    ) -> None:
        _groups.reposition_subgroup(self._conn, group_id, subgroup_id, new_pos)

    @_modifies_db
    def move_subgroup(
        self,
        group_id: int,
        subgroup_id: int,
        new_supergroup_id: int,
        new_pos: int | None = None,
    ) -> None:
        _groups.move_subgroup(
            self._conn, group_id, subgroup_id, new_supergroup_id, new_pos
        )

    @_modifies_db
    def add_entry(
        self, group_id: int, entry_id: int, pos_index: int | None = None
    ) -> int:
        return _groups.add_entry(self._conn, group_id, entry_id, pos_index)

    @_modifies_db
    def remove_entry(
        self, group_id: int, entry_id: int, delete: bool = False
    ) -> None:
        _groups.remove_entry(self._conn, group_id, entry_id, delete)

    @_modifies_db
    def reposition_entry(self, group_id: int, entry_id: int, new_pos: int) -> None:
        _groups.reposition_entry(self._conn, group_id, entry_id, new_pos)

    @_modifies_db
    def move_entry(
        self,
        group_id: int,
        entry_id: int,
        new_group_id: int,
        new_pos: int | None = None,
    ) -> None:
        _groups.move_entry(self._conn, group_id, entry_id, new_group_id, new_pos)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    @_modifies_db
    def create_entry(
        self,
        group_id: int,
        name: str,
        *,
        tags: Iterable[str] | None = None,
        icon: str | None = None,
        pos_index: int | None = None,
    ) -> EntryModel:
        return _entries.create_entry(
            self._conn, group_id, name, tags=tags, icon=icon, pos_index=pos_index
        )

    def get_entry(self, entry_id: int, recursive: bool = False) -> EntryModel:
        with _db.task(self._conn):
            entry = _entries.find_entry(self._conn, entry_id, recursive)
        return _found(entry, "Entry", entry_id)

    def entry_exists(self, entry_id: int) -> bool:
        return _entries.entry_exists(self._conn, entry_id)

    def list_sections(
        self, entry_id: int, recursive: bool = False
    ) -> list[SectionModel]:
        with _db.task(self._conn):
            return _sections.list_sections(self._conn, entry_id, recursive)

    @_modifies_db
    def delete_entry(self, entry_id: int) -> None:
        _entries.delete_entry(self._conn, entry_id)

    @_modifies_db
    def set_entry_property(
        self, entry_id: int, field: EntryField | str, value: Any
    ) -> None:
        _entries.set_entry_property(self._conn, entry_id, field, value)

    @_modifies_db
    def update_entry(
        self,
        entry_id: int,
        *,
        name: Any = _UNSET,
        tags: Any = _UNSET,
        icon: Any = _UNSET,
    ) -> EntryModel:
        changes = {EntryField.NAME: name, EntryField.TAGS: tags, EntryField.ICON: icon}
        for field, value in changes.items():
            if value is not _UNSET:
                _entries.set_entry_property(self._conn, entry_id, field, value)
        return self.get_entry(entry_id)

    @_modifies_db
    def add_section(
        self, entry_id: int, section_id: int, pos_index: int | None = None
    ) -> int:
        return _entries.add_section(self._conn, entry_id, section_id, pos_index)

    @_modifies_db
    def remove_section(
        self, entry_id: int, section_id: int, delete: bool = False
    ) -> None:
        _entries.remove_section(self._conn, entry_id, section_id, delete)

    @_modifies_db
    def reposition_section(
        self, entry_id: int, section_id: int, new_pos: int
    ) -> None:
        _entries.reposition_section(self._conn, entry_id, section_id, new_pos)

    @_modifies_db
    def move_section(
        self,
        entry_id: int,
        section_id: int,
        new_entry_id: int,
        new_pos: int | None = None,
    ) -> None:
        _entries.move_section(self._conn, entry_id, section_id, new_entry_id, new_pos)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    @_modifies_db
    def create_section(
        self, entry_id: int, name: str, *, pos_index: int | None = None
    ) -> SectionModel:
        return _sections.create_section(
            self._conn, entry_id, name, pos_index=pos_index
        )

    def get_section(self, section_id: int, recursive: bool = False) -> SectionModel:
        with _db.task(self._conn):
            section = _sections.find_section(self._conn, section_id, recursive)
        return _found(section, "Section", section_id)

    def section_exists(self, section_id: int) -> bool:
        return _sections.section_exists(self._conn, section_id)

    def list_elements(self, section_id: int) -> list[ElementModel]:
        return _elements.list_elements(self._conn, section_id)

    @_modifies_db
    def delete_section(self, section_id: int) -> None:
        _sections.delete_section(self._conn, section_id)

    @_modifies_db
    def set_section_property(
        self, section_id: int, field: SectionField | str, value: Any
    ) -> None:
        _sections.set_section_property(self._conn, section_id, field, value)

    @_modifies_db
    def add_element(
        self, section_id: int, element_id: int, pos_index: int | None = None
    ) -> int:
        return _sections.add_element(self._conn, section_id, element_id, pos_index)

    @_modifies_db
    def remove_element(
        self, section_id: int, element_id: int, delete: bool = False
    ) -> None:
        _sections.remove_element(self._conn, section_id, element_id, delete)

    @_modifies_db
    def reposition_element(
        self, section_id: int, element_id: int, new_pos: int
    ) -> None:
        _sections.reposition_element(self._conn, section_id, element_id, new_pos)

    @_modifies_db
    def move_element(
        self,
        section_id: int,
        element_id: int,
        new_section_id: int,
        new_pos: int | None = None,
    ) -> None:
        _sections.move_element(
            self._conn, section_id, element_id, new_section_id, new_pos
        )

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    @_modifies_db
    def create_element(
        self,
        section_id: int,
        name: str,
        value: str = "",
        type: ElementType | int = ElementType.CLEAR_TEXT,
        *,
        pos_index: int | None = None,
    ) -> ElementModel:
        return _elements.create_element(
            self._conn, section_id, name, value, type, pos_index=pos_index
        )

    def get_element(self, element_id: int) -> ElementModel:
        return _found(
            _elements.find_element(self._conn, element_id), "Element", element_id
        )

    def element_exists(self, element_id: int) -> bool:
        return _elements.element_exists(self._conn, element_id)

    @_modifies_db
    def delete_element(self, element_id: int) -> None:
        _elements.delete_element(self._conn, element_id)

    @_modifies_db
    def set_element_property(
        self, element_id: int, field: ElementField | str, value: Any
    ) -> None:
        _elements.set_element_property(self._conn, element_id, field, value)

    @_modifies_db
    def update_element(
        self,
        element_id: int,
        *,
        name: Any = _UNSET,
        value: Any = _UNSET,
        type: Any = _UNSET,
    ) -> ElementModel:
        changes = {
            ElementField.NAME: name,
            ElementField.VALUE: value,
            ElementField.TYPE: type,
        }
        for field, new_value in changes.items():
            if new_value is not _UNSET:
                _elements.set_element_property(
                    self._conn, element_id, field, new_value
                )
        return self.get_element(element_id)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_history(
        self,
        *,
        entity_type: str | None = None,
        entity_id: int | None = None,
        since: str | None = None,
        operation: str | None = None,
    ) -> list[EditRecord]:
        return _hist.query_history(
            self._conn,
            entity_type=entity_type,
            entity_id=entity_id,
            since=since,
            operation=operation,
        )

    def get_changes_since(self, timestamp: str) -> list[EditRecord]:
        return self.get_history(since=timestamp)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> list[ValidationResult]:
        with _db.task(self._conn):
            results = _validator.validate_all(self._conn)
        if results:
            logger.warning("Validation found %d issue(s)", len(results))
        return results

    def validate_group(self, group_id: int) -> list[ValidationResult]:
        return _validator.validate_group(self._conn, group_id)
