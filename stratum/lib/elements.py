"""Embedded element tree helpers.

A content's elements are stored as an ordered list of plain dict nodes::

    {
        "id": "3f2a...",            # stable identity, hex uuid
        "type": "wrapper",          # one of ElementType
        "data": {...},              # opaque, type specific payload
        "order": 0,                 # position among siblings, contiguous from 0
        "children": [...],          # wrappers only
        "is_locked": False, "locked_by": None, "locked_at": None, "lock_reason": None,
    }

All functions are pure: they never mutate the tree they are given and always
return a fresh copy. JSON columns only notice reassignment, so callers store
the returned tree back on the content.
"""

import copy
from collections.abc import Iterator
from enum import StrEnum
from typing import Any
from uuid import uuid4

from stratum.lib.exceptions import ElementNotFound, InvalidElement

Tree = list[dict[str, Any]]

LOCK_FIELDS = ("is_locked", "locked_by", "locked_at", "lock_reason")


class ElementType(StrEnum):
    TEXT = "text"
    MEDIA = "media"
    SVG = "svg"
    KATEX = "katex"
    HTML = "html"
    JSON = "json"
    XML = "xml"
    WRAPPER = "wrapper"

    @property
    def can_have_children(self) -> bool:
        return self is ElementType.WRAPPER


def parse_type(value: str) -> ElementType:
    try:
        return ElementType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in ElementType)
        raise InvalidElement(f"Unknown element type '{value}'. Expected one of: {allowed}.") from None


def new_element(element_type: str, data: dict[str, Any] | None = None, order: int = 0) -> dict[str, Any]:
    """Build a fresh, unlocked node with a new identity."""
    kind = parse_type(element_type)
    node: dict[str, Any] = {
        "id": uuid4().hex,
        "type": kind.value,
        "data": copy.deepcopy(data) if data else {},
        "order": order,
        "is_locked": False,
        "locked_by": None,
        "locked_at": None,
        "lock_reason": None,
    }
    if kind.can_have_children:
        node["children"] = []
    return node


def iter_elements(tree: Tree) -> Iterator[dict[str, Any]]:
    """Yield every node depth-first, parents before children."""
    for node in tree:
        yield node
        yield from iter_elements(node.get("children") or [])


def find_element(tree: Tree, element_id: str) -> dict[str, Any] | None:
    for node in iter_elements(tree):
        if node.get("id") == element_id:
            return node
    return None


def require_element(tree: Tree, element_id: str) -> dict[str, Any]:
    node = find_element(tree, element_id)
    if node is None:
        raise ElementNotFound(f"Element '{element_id}' not found.")
    return node


def _siblings(tree: Tree, parent_id: str | None) -> Tree:
    """Return the (mutable) child list of ``parent_id`` inside ``tree``."""
    if parent_id is None:
        return tree
    parent = require_element(tree, parent_id)
    if not parse_type(parent["type"]).can_have_children:
        raise InvalidElement(f"Element '{parent_id}' of type '{parent['type']}' cannot contain children.")
    return parent.setdefault("children", [])


def _reindex(siblings: Tree) -> None:
    siblings.sort(key=lambda n: n.get("order", 0))
    for position, node in enumerate(siblings):
        node["order"] = position


def _insert_at(siblings: Tree, node: dict[str, Any], order: int | None) -> None:
    _reindex(siblings)
    position = len(siblings) if order is None else max(0, min(order, len(siblings)))
    siblings.insert(position, node)
    for index, sibling in enumerate(siblings):
        sibling["order"] = index


def _detach(tree: Tree, element_id: str) -> tuple[dict[str, Any], str | None]:
    """Remove a node from ``tree`` in place, returning it and its former parent id."""
    stack: list[tuple[Tree, str | None]] = [(tree, None)]
    while stack:
        siblings, parent_id = stack.pop()
        for index, node in enumerate(siblings):
            if node.get("id") == element_id:
                siblings.pop(index)
                _reindex(siblings)
                return node, parent_id
            if node.get("children"):
                stack.append((node["children"], node["id"]))
    raise ElementNotFound(f"Element '{element_id}' not found.")


def parent_id_of(tree: Tree, element_id: str) -> str | None:
    for node in iter_elements(tree):
        for child in node.get("children") or []:
            if child.get("id") == element_id:
                return node["id"]
    require_element(tree, element_id)
    return None


def insert_element(tree: Tree, node: dict[str, Any], parent_id: str | None = None, order: int | None = None) -> Tree:
    """Insert ``node`` under ``parent_id`` (root when None).

    Without ``order`` the node is appended after its last sibling; with one it
    is inserted at that position and later siblings shift down.
    """
    result = copy.deepcopy(tree)
    _insert_at(_siblings(result, parent_id), copy.deepcopy(node), order)
    return result


def update_element(tree: Tree, element_id: str, changes: dict[str, Any]) -> Tree:
    """Apply ``type``/``data``/``order`` changes to one node."""
    result = copy.deepcopy(tree)
    node = require_element(result, element_id)

    if "type" in changes and changes["type"] is not None:
        kind = parse_type(changes["type"])
        if not kind.can_have_children and node.get("children"):
            raise InvalidElement("Only wrapper elements can contain children.")
        node["type"] = kind.value
        if kind.can_have_children:
            node.setdefault("children", [])
        else:
            node.pop("children", None)

    if "data" in changes and changes["data"] is not None:
        node["data"] = copy.deepcopy(changes["data"])

    if "order" in changes and changes["order"] is not None:
        parent_id = parent_id_of(result, element_id)
        detached, _ = _detach(result, element_id)
        _insert_at(_siblings(result, parent_id), detached, changes["order"])

    return result


def set_lock_fields(tree: Tree, element_id: str, fields: dict[str, Any]) -> Tree:
    """Overwrite the lock fields of one node, leaving every other node untouched."""
    result = copy.deepcopy(tree)
    node = require_element(result, element_id)
    for key in LOCK_FIELDS:
        node[key] = fields.get(key)
    return result


def remove_element(tree: Tree, element_id: str) -> tuple[Tree, dict[str, Any]]:
    """Remove a node together with its whole subtree."""
    result = copy.deepcopy(tree)
    removed, _ = _detach(result, element_id)
    return result, removed


def move_element(tree: Tree, element_id: str, new_parent_id: str | None, new_order: int) -> Tree:
    """Move a node (and its subtree) to ``new_parent_id`` at ``new_order``."""
    result = copy.deepcopy(tree)
    node = require_element(result, element_id)

    if new_parent_id is not None:
        if new_parent_id == element_id or find_element(node.get("children") or [], new_parent_id):
            raise InvalidElement("An element cannot be moved into itself or one of its descendants.")

    # Validate the target before detaching so a bad target leaves no trace
    _siblings(result, new_parent_id)

    detached, _ = _detach(result, element_id)
    _insert_at(_siblings(result, new_parent_id), detached, new_order)
    return result


def normalize_tree(tree: Tree) -> Tree:
    """Validate a client-supplied tree and fill in identities, lock fields and orders."""
    result = copy.deepcopy(tree or [])

    def _normalize(siblings: Tree) -> None:
        for node in siblings:
            if not isinstance(node, dict) or "type" not in node:
                raise InvalidElement("Every element needs a type.")
            kind = parse_type(node["type"])
            node["type"] = kind.value
            node.setdefault("id", uuid4().hex)
            node.setdefault("data", {})
            for key in LOCK_FIELDS:
                node.setdefault(key, False if key == "is_locked" else None)
            children = node.get("children")
            if kind.can_have_children:
                node["children"] = children or []
                _normalize(node["children"])
            elif children:
                raise InvalidElement("Only wrapper elements can contain children.")
            else:
                node.pop("children", None)
        for position, node in enumerate(siblings):
            node.setdefault("order", position)
        _reindex(siblings)

    _normalize(result)

    seen: set[str] = set()
    for node in iter_elements(result):
        if node["id"] in seen:
            raise InvalidElement(f"Duplicate element id '{node['id']}'.")
        seen.add(node["id"])

    return result


def carry_lock_fields(current: Tree, replacement: Tree) -> Tree:
    """Give a replacement tree the lock state stored in ``current``.

    Lock fields only change through locking, so whatever the replacement
    carries is discarded: known element ids keep their stored lock state and
    new ones start unlocked.
    """
    result = copy.deepcopy(replacement or [])
    for node in iter_elements(result):
        existing = find_element(current or [], node["id"])
        for key in LOCK_FIELDS:
            if existing is not None:
                node[key] = existing.get(key)
            else:
                node[key] = False if key == "is_locked" else None
    return result
