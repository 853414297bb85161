"""Shared test fixtures for vault-tree."""

from typing import NamedTuple

import pytest

from vault_tree import VaultEditor, db


class Tree(NamedTuple):
    root: int
    work: int
    home: int
    mail: int
    vpn: int
    login: int
    recovery: int
    username: int
    password: int


@pytest.fixture
def conn():
    """Bare in-memory connection for module-level functions."""
    conn = db.connect(":memory:")
    db.init_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def editor():
    """Create an in-memory editor for testing."""
    with VaultEditor(":memory:") as ed:
        yield ed


@pytest.fixture
def user(editor):
    """Editor user 'alice' with an empty root group."""
    return editor.create_user("alice", "alice@example.com", display_name="Alice")


@pytest.fixture
def tree(editor, user):
    """A small vault below alice's root group.

    root
      Work            (group)
        Mail          (entry)
          Login       (section: username, password)
          Recovery    (section)
        VPN           (entry)
      Home            (group)
    """
    root = user.root_id
    work = editor.create_group("Work", root)
    home = editor.create_group("Home", root)
    mail = editor.create_entry(work.id, "Mail", tags=["email", "work"])
    vpn = editor.create_entry(work.id, "VPN")
    login = editor.create_section(mail.id, "Login")
    recovery = editor.create_section(mail.id, "Recovery")
    username = editor.create_element(login.id, "username", "alice")
    password = editor.create_element(login.id, "password", "s3cret", 1)
    return Tree(
        root, work.id, home.id, mail.id, vpn.id,
        login.id, recovery.id, username.id, password.id,
    )
