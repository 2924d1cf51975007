"""Tests for the embedded element tree helpers."""

import pytest

from stratum.lib import elements as tree_ops
from stratum.lib.elements import ElementType
from stratum.lib.exceptions import ElementNotFound, InvalidElement


def _orders(siblings):
    return [node["order"] for node in siblings]


def _ids(siblings):
    return [node["id"] for node in siblings]


@pytest.fixture
def tree():
    """Root: text a, wrapper w (children: text b, text c), text d."""
    result = []
    for node_id, kind in (("a", "text"), ("w", "wrapper"), ("d", "text")):
        node = tree_ops.new_element(kind)
        node["id"] = node_id
        result = tree_ops.insert_element(result, node)
    for node_id in ("b", "c"):
        node = tree_ops.new_element("text")
        node["id"] = node_id
        result = tree_ops.insert_element(result, node, parent_id="w")
    return result


class TestNewElement:
    def test_fresh_node_is_unlocked(self):
        node = tree_ops.new_element("text", {"body": "hi"})
        assert node["type"] == "text"
        assert node["data"] == {"body": "hi"}
        assert node["is_locked"] is False
        assert len(node["id"]) == 32
        assert "children" not in node

    def test_only_wrappers_get_children(self):
        assert tree_ops.new_element("wrapper")["children"] == []
        assert ElementType.WRAPPER.can_have_children
        assert not ElementType.KATEX.can_have_children

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidElement, match="Unknown element type 'video'"):
            tree_ops.new_element("video")


class TestInsert:
    def test_append_keeps_orders_contiguous(self, tree):
        assert _ids(tree) == ["a", "w", "d"]
        assert _orders(tree) == [0, 1, 2]
        assert _orders(tree[1]["children"]) == [0, 1]

    def test_insert_at_position_shifts_siblings(self, tree):
        node = tree_ops.new_element("svg")
        node["id"] = "x"
        result = tree_ops.insert_element(tree, node, order=1)

        assert _ids(result) == ["a", "x", "w", "d"]
        assert _orders(result) == [0, 1, 2, 3]

    def test_insert_does_not_mutate_input(self, tree):
        before = [dict(node) for node in tree]
        tree_ops.insert_element(tree, tree_ops.new_element("text"))
        assert len(tree) == len(before)

    def test_insert_into_non_wrapper_rejected(self, tree):
        with pytest.raises(InvalidElement, match="cannot contain children"):
            tree_ops.insert_element(tree, tree_ops.new_element("text"), parent_id="a")

    def test_insert_into_missing_parent(self, tree):
        with pytest.raises(ElementNotFound):
            tree_ops.insert_element(tree, tree_ops.new_element("text"), parent_id="nope")


class TestFind:
    def test_find_nested(self, tree):
        assert tree_ops.find_element(tree, "c")["id"] == "c"
        assert tree_ops.find_element(tree, "zzz") is None

    def test_parent_id_of(self, tree):
        assert tree_ops.parent_id_of(tree, "b") == "w"
        assert tree_ops.parent_id_of(tree, "a") is None

    def test_iter_is_depth_first(self, tree):
        assert [n["id"] for n in tree_ops.iter_elements(tree)] == ["a", "w", "b", "c", "d"]


class TestUpdate:
    def test_update_data(self, tree):
        result = tree_ops.update_element(tree, "b", {"data": {"body": "new"}})
        assert tree_ops.find_element(result, "b")["data"] == {"body": "new"}
        assert tree_ops.find_element(tree, "b")["data"] == {}

    def test_reorder_within_siblings(self, tree):
        result = tree_ops.update_element(tree, "d", {"order": 0})
        assert _ids(result) == ["d", "a", "w"]
        assert _orders(result) == [0, 1, 2]

    def test_wrapper_with_children_cannot_become_leaf(self, tree):
        with pytest.raises(InvalidElement, match="Only wrapper"):
            tree_ops.update_element(tree, "w", {"type": "text"})

    def test_leaf_can_become_wrapper(self, tree):
        result = tree_ops.update_element(tree, "a", {"type": "wrapper"})
        assert tree_ops.find_element(result, "a")["children"] == []


class TestRemove:
    def test_remove_subtree(self, tree):
        result, removed = tree_ops.remove_element(tree, "w")
        assert removed["id"] == "w"
        assert _ids(removed["children"]) == ["b", "c"]
        assert _ids(result) == ["a", "d"]
        assert _orders(result) == [0, 1]

    def test_remove_missing(self, tree):
        with pytest.raises(ElementNotFound):
            tree_ops.remove_element(tree, "nope")


class TestMove:
    def test_move_into_wrapper(self, tree):
        result = tree_ops.move_element(tree, "a", "w", 1)

        assert _ids(result) == ["w", "d"]
        assert _orders(result) == [0, 1]
        assert _ids(result[0]["children"]) == ["b", "a", "c"]
        assert _orders(result[0]["children"]) == [0, 1, 2]

    def test_move_out_to_root(self, tree):
        result = tree_ops.move_element(tree, "c", None, 0)
        assert _ids(result) == ["c", "a", "w", "d"]
        assert _ids(result[2]["children"]) == ["b"]

    def test_move_into_itself_rejected(self, tree):
        with pytest.raises(InvalidElement, match="itself or one of its descendants"):
            tree_ops.move_element(tree, "w", "w", 0)

    def test_move_into_descendant_rejected(self):
        outer = tree_ops.new_element("wrapper")
        inner = tree_ops.new_element("wrapper")
        tree = tree_ops.insert_element([], outer)
        tree = tree_ops.insert_element(tree, inner, parent_id=outer["id"])

        with pytest.raises(InvalidElement):
            tree_ops.move_element(tree, outer["id"], inner["id"], 0)

    def test_move_to_non_wrapper_leaves_tree_intact(self, tree):
        with pytest.raises(InvalidElement):
            tree_ops.move_element(tree, "a", "d", 0)
        assert _ids(tree) == ["a", "w", "d"]

    def test_order_is_clamped(self, tree):
        result = tree_ops.move_element(tree, "a", None, 99)
        assert _ids(result) == ["w", "d", "a"]


class TestNormalize:
    def test_fills_identity_and_lock_fields(self):
        result = tree_ops.normalize_tree([{"type": "text"}, {"type": "wrapper", "children": [{"type": "katex"}]}])

        assert all(len(node["id"]) == 32 for node in tree_ops.iter_elements(result))
        assert _orders(result) == [0, 1]
        assert result[1]["children"][0]["is_locked"] is False
        assert "children" not in result[0]

    def test_sorts_by_given_order(self):
        result = tree_ops.normalize_tree([
            {"id": "x", "type": "text", "order": 5},
            {"id": "y", "type": "text", "order": 1},
        ])
        assert _ids(result) == ["y", "x"]
        assert _orders(result) == [0, 1]

    def test_children_on_leaf_rejected(self):
        with pytest.raises(InvalidElement):
            tree_ops.normalize_tree([{"type": "html", "children": [{"type": "text"}]}])

    def test_missing_type_rejected(self):
        with pytest.raises(InvalidElement, match="needs a type"):
            tree_ops.normalize_tree([{"data": {}}])

    def test_duplicate_ids_rejected(self):
        with pytest.raises(InvalidElement, match="Duplicate element id"):
            tree_ops.normalize_tree([{"id": "x", "type": "text"}, {"id": "x", "type": "json"}])
