"""Tests for elements."""

import pytest

from vault_tree import (
    ElementField,
    ElementType,
    EntityNotFoundError,
    InvalidPropertyError,
    ParameterError,
)


class TestCreateElement:

    def test_defaults(self, editor, tree):
        el = editor.create_element(tree.recovery, "hint")
        assert el.value == ""
        assert el.type is ElementType.CLEAR_TEXT
        assert el.pos_index == 0
        assert el.section_id == tree.recovery

    def test_password_type(self, editor, tree):
        el = editor.get_element(tree.password)
        assert el.type is ElementType.PASSWORD
        assert el.value == "s3cret"

    def test_invalid_type(self, editor, tree):
        with pytest.raises(ParameterError):
            editor.create_element(tree.recovery, "pin", "1234", 5)
        assert editor.list_elements(tree.recovery) == []

    def test_create_at_front(self, editor, tree):
        editor.create_element(tree.login, "url", "https://mail.example.com", pos_index=0)
        names = [e.name for e in editor.list_elements(tree.login)]
        assert names == ["url", "username", "password"]

    def test_create_in_missing_section(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.create_element(1234, "x")


class TestElementProperties:

    def test_set_value(self, editor, tree):
        editor.set_element_property(tree.password, ElementField.VALUE, "n3w")
        assert editor.get_element(tree.password).value == "n3w"

    def test_set_type(self, editor, tree):
        editor.set_element_property(tree.username, "type", ElementType.PASSWORD)
        assert editor.get_element(tree.username).type is ElementType.PASSWORD

    def test_set_invalid_type(self, editor, tree):
        with pytest.raises(ParameterError):
            editor.set_element_property(tree.username, "type", 7)
        assert editor.get_element(tree.username).type is ElementType.CLEAR_TEXT

    def test_update_element(self, editor, tree):
        el = editor.update_element(tree.username, name="login", value="alice@corp")
        assert (el.name, el.value) == ("login", "alice@corp")
        assert el.type is ElementType.CLEAR_TEXT

    def test_set_pos_index(self, editor, tree):
        editor.set_element_property(tree.password, "pos_index", 0)
        assert [e.name for e in editor.list_elements(tree.login)] == ["password", "username"]

    def test_set_section_id(self, editor, tree):
        editor.set_element_property(tree.username, "section_id", tree.recovery)
        assert [e.name for e in editor.list_elements(tree.recovery)] == ["username"]
        assert editor.get_element(tree.password).pos_index == 0

    def test_unknown_property(self, editor, tree):
        with pytest.raises(InvalidPropertyError):
            editor.set_element_property(tree.username, "tags", ["x"])


class TestDeleteElement:

    def test_delete_closes_gap(self, editor, tree):
        editor.delete_element(tree.username)
        assert not editor.element_exists(tree.username)
        remaining = editor.list_elements(tree.login)
        assert [(e.name, e.pos_index) for e in remaining] == [("password", 0)]

    def test_delete_missing(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.delete_element(31337)

    def test_get_missing(self, editor):
        with pytest.raises(EntityNotFoundError):
            editor.get_element(31337)
