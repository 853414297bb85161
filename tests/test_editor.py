"""Tests for VaultEditor lifecycle and batching."""

import pytest

from vault_tree import (
    EntityNotFoundError,
    InvalidPositionError,
    StorageError,
    VaultConfig,
    VaultEditor,
)


class TestLifecycle:

    def test_context_manager_closes(self):
        with VaultEditor() as ed:
            ed.create_user("alice", "alice@example.com")
        with pytest.raises(StorageError):
            ed.user_exists(1)

    def test_file_database_persists(self, tmp_path):
        path = tmp_path / "vault.db"
        with VaultEditor(path) as ed:
            user = ed.create_user("alice", "alice@example.com")
            ed.create_group("Work", user.root_id)
        with VaultEditor(str(path)) as ed:
            assert [g.name for g in ed.list_subgroups(user.root_id)] == ["Work"]

    def test_from_config(self, tmp_path):
        config = VaultConfig(db_path=str(tmp_path / "cfg.db"), busy_timeout=1.0)
        with VaultEditor.from_config(config) as ed:
            ed.create_user("alice", "alice@example.com")
        assert (tmp_path / "cfg.db").exists()

    def test_failed_operation_is_atomic(self, editor, tree):
        with pytest.raises(InvalidPositionError):
            editor.move_entry(tree.work, tree.mail, tree.home, 3)
        assert [e.name for e in editor.list_entries(tree.work)] == ["Mail", "VPN"]
        assert editor.list_entries(tree.home) == []
        assert not editor._conn.in_transaction


class TestBatch:

    def test_batch_commits(self, editor, user):
        with editor.batch():
            a = editor.create_group("A", user.root_id)
            editor.create_entry(a.id, "E")
        assert editor.group_exists(a.id)
        assert not editor._conn.in_transaction

    def test_batch_rolls_back_everything(self, editor, user):
        with pytest.raises(RuntimeError):
            with editor.batch():
                editor.create_group("A", user.root_id)
                editor.create_group("B", user.root_id)
                raise RuntimeError("abort")
        assert editor.list_subgroups(user.root_id) == []
        assert not editor._in_batch

    def test_failed_step_inside_batch_leaves_earlier_steps(self, editor, tree):
        with editor.batch():
            editor.create_entry(tree.home, "Bank")
            with pytest.raises(InvalidPositionError):
                editor.move_entry(tree.work, tree.mail, tree.home, 5)
            editor.create_entry(tree.home, "Broker")
        assert [e.name for e in editor.list_entries(tree.home)] == ["Bank", "Broker"]
        assert [e.name for e in editor.list_entries(tree.work)] == ["Mail", "VPN"]
        assert editor.validate() == []

    def test_nested_batch_rolls_back_to_savepoint(self, editor, user):
        with editor.batch():
            editor.create_group("Outer", user.root_id)
            with pytest.raises(RuntimeError):
                with editor.batch():
                    editor.create_group("Inner", user.root_id)
                    raise RuntimeError("abort inner")
            assert editor._in_batch
        assert [g.name for g in editor.list_subgroups(user.root_id)] == ["Outer"]

    def test_reads_inside_batch_see_writes(self, editor, user):
        with editor.batch():
            g = editor.create_group("A", user.root_id)
            assert editor.get_group(g.id).name == "A"
            assert editor.get_owner("group", g.id) == user.id


class TestLookups:

    @pytest.mark.parametrize(
        "method", ["get_user", "get_group", "get_entry", "get_section", "get_element"]
    )
    def test_missing_raises_not_found(self, editor, method):
        with pytest.raises(EntityNotFoundError, match="not found"):
            getattr(editor, method)(12345)

    def test_exists(self, editor, tree):
        assert editor.group_exists(tree.work)
        assert editor.entry_exists(tree.mail)
        assert editor.section_exists(tree.login)
        assert editor.element_exists(tree.password)
        assert not editor.group_exists(12345)

    def test_list_entries_recursive(self, editor, tree):
        mail = editor.list_entries(tree.work, recursive=True)[0]
        assert [s.name for s in mail.sections] == ["Login", "Recovery"]
        assert [e.name for e in mail.sections[0].elements] == ["username", "password"]
