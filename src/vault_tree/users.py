"""Users: the owners of the vault trees."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import sqlite3
from typing import Any

from vault_tree import db as _db
from vault_tree import groups as _groups
from vault_tree import history as _hist
from vault_tree.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    InvalidPropertyError,
    ParameterError,
)
from vault_tree.models import UserField, UserModel, UserRole, parse_field

logger = logging.getLogger(__name__)

# username, root_id and created_at are fixed at creation; last_login is
# written by record_login only
_SETTABLE = frozenset({
    UserField.EMAIL, UserField.DISPLAY_NAME, UserField.FORENAME,
    UserField.SURNAME, UserField.ROLE, UserField.ENABLED,
    UserField.PROFILE_PICTURE,
})

_EMAIL_PATTERN = re.compile(
    r'(?:[^<>()\[\]\\.,;:\s@"]+(?:\.[^<>()\[\]\\.,;:\s@"]+)*|".+")'
    r"@(?:\[[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\]"
    r"|(?:[a-zA-Z0-9-]+\.)+[a-zA-Z]{2,})"
)


def _row_to_user(row: sqlite3.Row) -> UserModel:
    return UserModel(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        display_name=row["display_name"],
        forename=row["forename"],
        surname=row["surname"],
        role=UserRole(row["role"]),
        enabled=bool(row["enabled"]),
        root_id=row["root_id"],
        created_at=row["created_at"],
        profile_picture=row["profile_picture"],
        last_login=row["last_login"],
    )


def _role(value: Any) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise ParameterError(f"Invalid user role: {value!r}") from None


def check_email(email: Any) -> str:
    """Return ``email`` if it is a well-formed address."""
    if not isinstance(email, str) or _EMAIL_PATTERN.fullmatch(email) is None:
        raise ParameterError(f"Invalid email address: {email!r}")
    return email


def check_profile_picture(picture: Any) -> str | None:
    """Return ``picture`` if it is ``None`` or a padded Base64 string."""
    if picture is None:
        return None
    if not isinstance(picture, str):
        raise ParameterError("Profile picture must be a Base64 string")
    try:
        base64.b64decode(picture, validate=True)
    except (binascii.Error, ValueError):
        raise ParameterError("Profile picture is not a valid Base64 string") from None
    return picture


def create_user(
    conn: sqlite3.Connection,
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
    """Create a user together with its root group ``<username>_root``."""
    check_email(email)
    check_profile_picture(profile_picture)
    user_role = _role(role)
    clash = _db.one_or_none(
        conn,
        "SELECT username, email FROM users WHERE username = ? OR email = ?",
        (username, email),
    )
    if clash is not None:
        key = "username" if clash["username"] == username else "email"
        raise DuplicateEntityError(f"User with this {key} already exists")

    root = _groups.create_group(conn, f"{username}_root", root=True)
    user_id = _db.insert(
        conn,
        "INSERT INTO users (username, email, display_name, forename, surname, "
        "role, enabled, root_id, profile_picture) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            username, email, display_name, forename, surname,
            int(user_role), int(enabled), root.id, profile_picture,
        ),
    )
    _hist.record_create(
        conn, "user", user_id, {"username": username, "root_id": root.id}
    )
    return find_user(conn, user_id)


def user_exists(conn: sqlite3.Connection, user_id: int) -> bool:
    return _db.exists(conn, "users", user_id)


def find_user(conn: sqlite3.Connection, user_id: int) -> UserModel | None:
    row = _db.one_or_none(conn, "SELECT * FROM users WHERE id = ?", (user_id,))
    return _row_to_user(row) if row is not None else None


def find_user_by_root(conn: sqlite3.Connection, root_id: int) -> UserModel | None:
    """Find the user whose root group is ``root_id``."""
    row = _db.one_or_none(
        conn, "SELECT * FROM users WHERE root_id = ?", (root_id,)
    )
    return _row_to_user(row) if row is not None else None


def get_user_property(
    conn: sqlite3.Connection, user_id: int, field: UserField | str
) -> Any:
    field = parse_field(UserField, field)
    row = _db.one_or_none(
        conn, f"SELECT {field.value} FROM users WHERE id = ?", (user_id,)
    )
    if row is None:
        raise EntityNotFoundError(f"User not found: {user_id!r}")
    value = row[0]
    if field is UserField.ROLE:
        return UserRole(value)
    if field is UserField.ENABLED:
        return bool(value)
    return value


def set_user_property(
    conn: sqlite3.Connection,
    user_id: int,
    field: UserField | str,
    new_value: Any,
) -> None:
    field = parse_field(UserField, field)
    if field not in _SETTABLE:
        raise InvalidPropertyError(f"User property {field.value!r} is read-only")
    old_value = get_user_property(conn, user_id, field)

    if field is UserField.ROLE:
        new_value = int(_role(new_value))
        old_value = int(old_value)
    elif field is UserField.ENABLED:
        new_value = bool(new_value)
    elif field is UserField.PROFILE_PICTURE:
        check_profile_picture(new_value)
    elif field is UserField.EMAIL:
        check_email(new_value)
        clash = _db.one_or_none(
            conn, "SELECT id FROM users WHERE email = ? AND id != ?",
            (new_value, user_id),
        )
        if clash is not None:
            raise DuplicateEntityError("User with this email already exists")

    _hist.record_update(conn, "user", user_id, field.value, old_value, new_value)
    _db.none(
        conn,
        f"UPDATE users SET {field.value} = ? WHERE id = ?",
        (int(new_value) if isinstance(new_value, bool) else new_value, user_id),
    )


def enable_user(conn: sqlite3.Connection, user_id: int) -> None:
    set_user_property(conn, user_id, UserField.ENABLED, True)


def disable_user(conn: sqlite3.Connection, user_id: int) -> None:
    set_user_property(conn, user_id, UserField.ENABLED, False)


def record_login(conn: sqlite3.Connection, user_id: int) -> str:
    """Stamp ``last_login`` with the current time and return it.

    Disabled users are refused. The edit history is left untouched.
    """
    user = find_user(conn, user_id)
    if user is None:
        raise EntityNotFoundError(f"User not found: {user_id!r}")
    if not user.enabled:
        raise ParameterError(f"User {user_id} is disabled")
    _db.none(
        conn,
        "UPDATE users SET last_login = strftime('%Y-%m-%dT%H:%M:%f', 'now') "
        "WHERE id = ?",
        (user_id,),
    )
    last_login = get_user_property(conn, user_id, UserField.LAST_LOGIN)
    logger.debug("User %d logged in at %s", user_id, last_login)
    return last_login


def delete_user(conn: sqlite3.Connection, user_id: int) -> None:
    """Delete a user and the whole tree below its root group."""
    user = find_user(conn, user_id)
    if user is None:
        raise EntityNotFoundError(f"User not found: {user_id!r}")

    _hist.record_delete(conn, "user", user_id, {"username": user.username})
    _db.none(conn, "DELETE FROM users WHERE id = ?", (user_id,))
    _groups.delete_group(conn, user.root_id)
    logger.info("Deleted user %d and root group %d", user_id, user.root_id)
