"""Tests for users and their root groups."""

import pytest

from vault_tree import (
    DuplicateEntityError,
    EntityNotFoundError,
    InvalidPropertyError,
    ParameterError,
    UserField,
    UserRole,
)


class TestCreateUser:

    def test_create_user(self, editor, user):
        assert user.username == "alice"
        assert user.email == "alice@example.com"
        assert user.display_name == "Alice"
        assert user.role is UserRole.NORMAL
        assert user.enabled is False
        assert user.created_at

    def test_root_group_created(self, editor, user):
        root = editor.get_group(user.root_id)
        assert root.name == "alice_root"
        assert root.is_root
        assert editor.list_subgroups(root.id) == []

    def test_admin_user(self, editor):
        admin = editor.create_user("root", "root@example.com", role=1, enabled=True)
        assert admin.role is UserRole.ADMIN
        assert admin.enabled is True

    def test_invalid_role(self, editor):
        with pytest.raises(ParameterError):
            editor.create_user("eve", "eve@example.com", role=9)

    def test_duplicate_username(self, editor, user):
        with pytest.raises(DuplicateEntityError, match="username"):
            editor.create_user("alice", "other@example.com")

    def test_duplicate_email(self, editor, user):
        with pytest.raises(DuplicateEntityError, match="email"):
            editor.create_user("alice2", "alice@example.com")

    def test_profile_fields(self, editor):
        bob = editor.create_user(
            "bob", "bob@example.com", forename="Bob", surname="Builder",
            profile_picture="aGVsbG8=",
        )
        assert (bob.forename, bob.surname) == ("Bob", "Builder")
        assert bob.profile_picture == "aGVsbG8="
        assert bob.last_login is None

    def test_profile_fields_default_to_none(self, editor, user):
        assert user.forename is None
        assert user.surname is None
        assert user.profile_picture is None

    @pytest.mark.parametrize(
        "email",
        ["alice", "alice@", "@example.com", "alice@example", "a b@example.com", 42],
    )
    def test_invalid_email_rejected(self, editor, email):
        with pytest.raises(ParameterError, match="Invalid email"):
            editor.create_user("eve", email)
        assert editor._conn.execute("SELECT COUNT(*) FROM groups").fetchone()[0] == 0

    @pytest.mark.parametrize(
        "email", ["eve.smith@mail.example.com", "eve+vault@example.co", "eve@[10.0.0.1]"]
    )
    def test_valid_email_accepted(self, editor, email):
        assert editor.create_user("eve", email).email == email

    @pytest.mark.parametrize("picture", ["not base64!", "aGVsbG8", "abc", b"aGVsbG8="])
    def test_invalid_profile_picture_rejected(self, editor, picture):
        with pytest.raises(ParameterError, match="Base64"):
            editor.create_user("eve", "eve@example.com", profile_picture=picture)
        assert not editor.user_exists(1)

    def test_failed_create_leaves_no_root_group(self, editor, user):
        before = editor._conn.execute("SELECT COUNT(*) FROM groups").fetchone()[0]
        with pytest.raises(DuplicateEntityError):
            editor.create_user("alice", "x@example.com")
        after = editor._conn.execute("SELECT COUNT(*) FROM groups").fetchone()[0]
        assert before == after


class TestUserProperties:

    def test_get_property(self, editor, user):
        assert editor.get_user_property(user.id, "email") == "alice@example.com"
        assert editor.get_user_property(user.id, UserField.ROOT_ID) == user.root_id
        assert editor.get_user_property(user.id, "role") is UserRole.NORMAL

    def test_set_email(self, editor, user):
        editor.set_user_property(user.id, "email", "a@example.org")
        assert editor.get_user(user.id).email == "a@example.org"

    def test_set_email_clash(self, editor, user):
        editor.create_user("bob", "bob@example.com")
        with pytest.raises(DuplicateEntityError):
            editor.set_user_property(user.id, "email", "bob@example.com")

    def test_update_user(self, editor, user):
        updated = editor.update_user(user.id, role=UserRole.ADMIN, enabled=True)
        assert updated.role is UserRole.ADMIN
        assert updated.enabled is True
        assert updated.display_name == "Alice"

    def test_set_names(self, editor, user):
        updated = editor.update_user(user.id, forename="Alice", surname="Liddell")
        assert (updated.forename, updated.surname) == ("Alice", "Liddell")
        assert editor.get_user_property(user.id, UserField.SURNAME) == "Liddell"

    def test_set_invalid_email(self, editor, user):
        with pytest.raises(ParameterError, match="Invalid email"):
            editor.set_user_property(user.id, "email", "alice.example.com")
        assert editor.get_user(user.id).email == "alice@example.com"

    def test_set_profile_picture(self, editor, user):
        editor.set_user_property(user.id, "profile_picture", "AAECAw==")
        assert editor.get_user(user.id).profile_picture == "AAECAw=="
        editor.set_user_property(user.id, "profile_picture", None)
        assert editor.get_user(user.id).profile_picture is None

    def test_set_invalid_profile_picture(self, editor, user):
        editor.set_user_property(user.id, "profile_picture", "AAECAw==")
        with pytest.raises(ParameterError, match="Base64"):
            editor.update_user(user.id, forename="Al", profile_picture="%%%=")
        assert editor.get_user(user.id).profile_picture == "AAECAw=="
        assert editor.get_user(user.id).forename is None

    @pytest.mark.parametrize("field", ["root_id", "username", "created_at", "last_login"])
    def test_read_only_fields(self, editor, user, field):
        with pytest.raises(InvalidPropertyError):
            editor.set_user_property(user.id, field, 1)

    def test_unknown_field(self, editor, user):
        with pytest.raises(InvalidPropertyError):
            editor.get_user_property(user.id, "password")

    def test_missing_user(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.get_user_property(404, "email")


class TestAccountState:

    def test_enable_and_disable(self, editor, user):
        editor.enable_user(user.id)
        assert editor.get_user(user.id).enabled is True
        editor.disable_user(user.id)
        assert editor.get_user_property(user.id, "enabled") is False

    def test_enable_records_history(self, editor, user):
        editor.enable_user(user.id)
        record = editor.get_history()[-1]
        assert (record.entity_type, record.entity_id) == ("user", user.id)
        assert record.field_name == "enabled"

    def test_enable_missing_user(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.enable_user(404)

    def test_record_login(self, editor, user):
        editor.enable_user(user.id)
        before = editor.get_history()
        first = editor.record_login(user.id)
        assert editor.get_user(user.id).last_login == first
        second = editor.record_login(user.id)
        assert second >= first
        assert editor.get_history() == before

    def test_disabled_user_cannot_log_in(self, editor, user):
        with pytest.raises(ParameterError, match="disabled"):
            editor.record_login(user.id)
        assert editor.get_user(user.id).last_login is None

    def test_login_of_missing_user(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.record_login(404)


class TestDeleteUser:

    def test_delete_removes_tree(self, editor, user, tree):
        editor.delete_user(user.id)
        assert not editor.user_exists(user.id)
        assert not editor.group_exists(tree.root)
        assert not editor.group_exists(tree.work)
        assert not editor.entry_exists(tree.mail)
        assert not editor.element_exists(tree.password)

    def test_delete_leaves_other_users(self, editor, user, tree):
        bob = editor.create_user("bob", "bob@example.com")
        bank = editor.create_entry(bob.root_id, "Bank")
        editor.delete_user(user.id)
        assert editor.entry_exists(bank.id)
        assert editor.validate() == []

    def test_delete_missing(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.delete_user(404)
