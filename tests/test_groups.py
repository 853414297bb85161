"""Tests for groups: sub-group and entry orderings, cycles, cascades."""

import pytest

from vault_tree import (
    EntityNotFoundError,
    GroupField,
    InvalidPositionError,
    ParameterError,
    TreeCycleError,
)


def names(models):
    return [m.name for m in models]


class TestCreateGroup:

    def test_create_appends_subgroups(self, editor, user):
        a = editor.create_group("A", user.root_id)
        b = editor.create_group("B", user.root_id)
        assert (a.pos_index, b.pos_index) == (0, 1)
        assert a.supergroup_id == user.root_id
        assert not a.is_root

    def test_create_at_position(self, editor, user):
        editor.create_group("A", user.root_id)
        editor.create_group("B", user.root_id, pos_index=0)
        assert names(editor.list_subgroups(user.root_id)) == ["B", "A"]

    def test_create_with_icon(self, editor, user):
        g = editor.create_group("Bank", user.root_id, icon="bank.png")
        assert editor.get_group(g.id).icon == "bank.png"

    def test_create_in_missing_group(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.create_group("X", 999)

    def test_create_out_of_bounds(self, editor, user):
        with pytest.raises(InvalidPositionError):
            editor.create_group("X", user.root_id, pos_index=1)
        assert editor.list_subgroups(user.root_id) == []

    def test_root_group_has_no_position(self, editor, user):
        root = editor.get_group(user.root_id)
        assert root.is_root
        assert root.pos_index is None
        assert root.supergroup_id is None
        assert root.name == "alice_root"


class TestIndependentOrderings:

    def test_entries_and_subgroups_numbered_separately(self, editor, tree):
        editor.create_entry(tree.root, "Top entry")
        subgroups = editor.list_subgroups(tree.root)
        entries = editor.list_entries(tree.root)
        assert [g.pos_index for g in subgroups] == [0, 1]
        assert [e.pos_index for e in entries] == [0]

    def test_entry_ops_do_not_renumber_subgroups(self, editor, tree):
        a = editor.create_entry(tree.root, "A")
        editor.create_entry(tree.root, "B")
        editor.reposition_entry(tree.root, a.id, 1)
        editor.delete_entry(a.id)
        assert names(editor.list_subgroups(tree.root)) == ["Work", "Home"]
        assert [g.pos_index for g in editor.list_subgroups(tree.root)] == [0, 1]

    def test_subgroup_ops_do_not_renumber_entries(self, editor, tree):
        editor.create_group("Extra", tree.work, pos_index=0)
        editor.reposition_subgroup(tree.work, editor.list_subgroups(tree.work)[0].id, 0)
        assert names(editor.list_entries(tree.work)) == ["Mail", "VPN"]
        assert [e.pos_index for e in editor.list_entries(tree.work)] == [0, 1]

    def test_subgroup_count(self, editor, tree):
        assert editor.subgroup_count(tree.root) == 2
        assert editor.subgroup_count(tree.work) == 0


class TestMoveGroups:

    def test_move_subgroup(self, editor, tree):
        editor.move_subgroup(tree.root, tree.home, tree.work, None)
        assert names(editor.list_subgroups(tree.root)) == ["Work"]
        assert names(editor.list_subgroups(tree.work)) == ["Home"]
        assert editor.get_group(tree.home).supergroup_id == tree.work

    def test_reposition_subgroup(self, editor, tree):
        editor.reposition_subgroup(tree.root, tree.home, 0)
        assert names(editor.list_subgroups(tree.root)) == ["Home", "Work"]

    def test_move_into_itself_rejected(self, editor, tree):
        with pytest.raises(TreeCycleError):
            editor.move_subgroup(tree.root, tree.work, tree.work, None)

    def test_move_into_descendant_rejected(self, editor, tree):
        child = editor.create_group("Child", tree.work)
        grandchild = editor.create_group("Grandchild", child.id)
        with pytest.raises(TreeCycleError):
            editor.move_subgroup(tree.root, tree.work, grandchild.id, None)
        assert names(editor.list_subgroups(tree.root)) == ["Work", "Home"]
        assert editor.get_group(tree.work).supergroup_id == tree.root

    def test_cycle_error_is_parameter_error(self, editor, tree):
        child = editor.create_group("Child", tree.work)
        with pytest.raises(ParameterError):
            editor.set_group_property(tree.work, "supergroup_id", child.id)

    def test_move_between_users_trees(self, editor, tree):
        bob = editor.create_user("bob", "bob@example.com")
        editor.move_subgroup(tree.root, tree.home, bob.root_id, 0)
        assert editor.get_group_owner(tree.home) == bob.id

    def test_root_group_cannot_be_attached(self, editor, tree):
        bob = editor.create_user("bob", "bob@example.com")
        with pytest.raises(ParameterError):
            editor.add_subgroup(tree.work, bob.root_id)

    def test_root_group_position_not_settable(self, editor, tree):
        with pytest.raises(ParameterError):
            editor.set_group_property(tree.root, GroupField.POS_INDEX, 0)

    def test_move_entry_between_groups(self, editor, tree):
        editor.move_entry(tree.work, tree.mail, tree.home)
        assert names(editor.list_entries(tree.work)) == ["VPN"]
        assert names(editor.list_entries(tree.home)) == ["Mail"]
        assert editor.get_entry(tree.mail).group_id == tree.home

    def test_detach_and_reattach_subgroup(self, editor, tree):
        editor.remove_subgroup(tree.root, tree.work)
        assert names(editor.list_subgroups(tree.root)) == ["Home"]
        editor.add_subgroup(tree.home, tree.work, 0)
        assert names(editor.list_subgroups(tree.home)) == ["Work"]


class TestGroupProperties:

    def test_set_name(self, editor, tree):
        editor.set_group_property(tree.work, "name", "Office")
        assert editor.get_group(tree.work).name == "Office"

    def test_update_group(self, editor, tree):
        g = editor.update_group(tree.home, name="House", icon="house.png")
        assert (g.name, g.icon) == ("House", "house.png")

    def test_set_pos_index_repositions(self, editor, tree):
        editor.set_group_property(tree.home, GroupField.POS_INDEX, 0)
        assert names(editor.list_subgroups(tree.root)) == ["Home", "Work"]

    def test_set_supergroup_moves_to_end(self, editor, tree):
        editor.create_group("Existing", tree.home)
        editor.set_group_property(tree.work, "supergroup_id", tree.home)
        assert names(editor.list_subgroups(tree.home)) == ["Existing", "Work"]
        assert names(editor.list_subgroups(tree.root)) == ["Home"]
        assert editor.get_group(tree.home).pos_index == 0
        assert [g.pos_index for g in editor.list_subgroups(tree.home)] == [0, 1]

    def test_unknown_property(self, editor, tree):
        with pytest.raises(ParameterError, match="Invalid property name"):
            editor.set_group_property(tree.work, "color", "red")

    def test_get_property(self, editor, tree):
        assert editor.get_group_property(tree.home, "name") == "Home"
        assert editor.get_group_property(tree.home, GroupField.POS_INDEX) == 1
        assert editor.get_group_property(tree.home, "supergroup_id") == tree.root
        assert editor.get_group_property(tree.home, "icon") is None

    def test_get_property_follows_updates(self, editor, tree):
        editor.update_group(tree.work, icon="briefcase.png")
        editor.set_group_property(tree.home, "pos_index", 0)
        assert editor.get_group_property(tree.work, "icon") == "briefcase.png"
        assert editor.get_group_property(tree.work, "pos_index") == 1

    def test_root_group_properties(self, editor, tree):
        assert editor.get_group_property(tree.root, "supergroup_id") is None
        assert editor.get_group_property(tree.root, "pos_index") is None

    def test_get_unknown_property(self, editor, tree):
        with pytest.raises(ParameterError, match="Invalid property name"):
            editor.get_group_property(tree.work, "color")

    def test_get_property_of_missing_group(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.get_group_property(999, "name")


class TestDeleteGroup:

    def test_cascading_delete(self, editor, user):
        root = user.root_id
        doomed = editor.create_group("Doomed", root)
        keep = editor.create_group("Keep", root)
        element_ids = []
        entry_ids = []
        section_ids = []
        for i in range(2):
            entry = editor.create_entry(doomed.id, f"E{i}")
            section = editor.create_section(entry.id, "Login")
            entry_ids.append(entry.id)
            section_ids.append(section.id)
            for name in ("user", "pass"):
                element_ids.append(editor.create_element(section.id, name, "x").id)

        editor.delete_group(doomed.id)

        assert not editor.group_exists(doomed.id)
        assert not any(editor.entry_exists(i) for i in entry_ids)
        assert not any(editor.section_exists(i) for i in section_ids)
        assert not any(editor.element_exists(i) for i in element_ids)
        assert editor.get_group(keep.id).pos_index == 0
        assert editor.validate() == []

    def test_delete_removes_nested_subgroups(self, editor, tree):
        inner = editor.create_group("Inner", tree.work)
        editor.delete_group(tree.work)
        assert not editor.group_exists(inner.id)
        assert not editor.entry_exists(tree.vpn)
        assert names(editor.list_subgroups(tree.root)) == ["Home"]

    def test_delete_reaches_detached_children(self, editor, tree):
        editor.remove_entry(tree.work, tree.vpn)
        editor.delete_group(tree.work)
        assert not editor.entry_exists(tree.vpn)

    def test_root_group_of_user_not_deletable(self, editor, tree):
        with pytest.raises(ParameterError):
            editor.delete_group(tree.root)
        assert editor.group_exists(tree.root)

    def test_delete_missing(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.delete_group(999)


class TestFindGroup:

    def test_depth_zero_has_no_children(self, editor, tree):
        g = editor.get_group(tree.root)
        assert g.subgroups == ()
        assert g.entries == ()

    def test_depth_one(self, editor, tree):
        g = editor.get_group(tree.root, depth=1)
        assert names(g.subgroups) == ["Work", "Home"]
        assert g.subgroups[0].subgroups == ()

    def test_full_subtree(self, editor, tree):
        editor.create_group("Deep", tree.work)
        g = editor.get_group(tree.root, depth=-1)
        work = g.subgroups[0]
        assert names(work.subgroups) == ["Deep"]
        mail = work.entries[0]
        assert names(mail.sections) == ["Login", "Recovery"]
        assert names(mail.sections[0].elements) == ["username", "password"]

    def test_get_missing_group(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.get_group(42)

    def test_group_owner(self, editor, user, tree):
        assert editor.get_group_owner(tree.work) == user.id
        assert editor.get_group_owner(tree.root) == user.id
