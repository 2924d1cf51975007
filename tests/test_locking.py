"""Tests for hierarchical lock resolution."""

from datetime import datetime, UTC

import pytest

from stratum.db.models import Collection, Content
from stratum.lib.exceptions import ResourceLocked
from stratum.lib.locking import (
    ElementRef,
    SELF,
    can_modify,
    effective_lock,
    ensure_can_modify,
    lock,
    lock_chain,
    unlock,
)


def _tree():
    return [
        {"id": "a", "type": "text", "data": {}, "order": 0, "is_locked": False,
         "locked_by": None, "locked_at": None, "lock_reason": None},
        {"id": "w", "type": "wrapper", "data": {}, "order": 1, "is_locked": False,
         "locked_by": None, "locked_at": None, "lock_reason": None, "children": [
            {"id": "b", "type": "text", "data": {}, "order": 0, "is_locked": False,
             "locked_by": None, "locked_at": None, "lock_reason": None},
        ]},
    ]


@pytest.fixture
def collection():
    return Collection(name="Docs", slug="docs", is_locked=False)


@pytest.fixture
def content(collection):
    return Content(collection=collection, title="Page", slug="page", is_locked=False, elements=_tree())


class TestLockChain:
    """The ownership chain walked by resolution."""

    def test_element_chain_reaches_collection(self, content, collection):
        chain = list(lock_chain(ElementRef(content, "b")))
        assert [entity.lock_kind for entity in chain] == ["element", "content", "collection"]
        assert chain[1] is content
        assert chain[2] is collection

    def test_collection_chain_is_itself(self, collection):
        assert list(lock_chain(collection)) == [collection]


class TestEffectiveLock:
    """Resolution reports the nearest locked entity."""

    def test_nothing_locked(self, content):
        result = effective_lock(ElementRef(content, "a"))
        assert result.locked is False
        assert result.source is None
        assert result.info is None
        assert can_modify(content)

    def test_self_lock_reports_self(self, content):
        lock(content, "alice", "review")

        result = effective_lock(content)
        assert result.locked is True
        assert result.source == SELF
        assert result.info.locked_by == "alice"
        assert result.info.lock_reason == "review"

    def test_collection_lock_freezes_descendants(self, content, collection):
        lock(collection, "bob")

        assert effective_lock(content).source == "collection"
        assert effective_lock(ElementRef(content, "b")).source == "collection"
        assert effective_lock(collection).source == SELF
        # Locking the collection writes nothing to its descendants
        assert not content.is_locked
        assert not ElementRef(content, "b").is_locked

    def test_nearest_lock_wins(self, content, collection):
        lock(collection, "bob")
        lock(content, "alice")

        result = effective_lock(ElementRef(content, "a"))
        assert result.source == "content"
        assert result.info.locked_by == "alice"

    def test_element_self_lock(self, content):
        ref = ElementRef(content, "b")
        lock(ref, "carol", "legal")

        assert effective_lock(ref).source == SELF
        assert can_modify(content)
        assert can_modify(ElementRef(content, "a"))

    def test_locked_at_is_iso_string(self, content):
        lock(content, "alice")
        info = effective_lock(content).info
        assert isinstance(info.locked_at, str)
        assert datetime.fromisoformat(info.locked_at).tzinfo is not None


class TestEnsureCanModify:
    """The guard every mutation path calls first."""

    def test_self_lock_message(self, content):
        lock(content, "alice")

        with pytest.raises(ResourceLocked) as exc_info:
            ensure_can_modify(content)

        assert exc_info.value.message == "Content is locked and cannot be modified."
        assert exc_info.value.source == SELF
        assert exc_info.value.status_code == 423

    def test_ancestor_lock_message(self, content, collection):
        lock(collection, "bob", "freeze")

        with pytest.raises(ResourceLocked) as exc_info:
            ensure_can_modify(content)

        assert exc_info.value.message == "Content cannot be modified because its collection is locked."
        assert exc_info.value.lock_info["source"] == "collection"
        assert exc_info.value.lock_info["lock_reason"] == "freeze"

    def test_element_blocked_by_content(self, content):
        lock(content, "alice")

        with pytest.raises(ResourceLocked) as exc_info:
            ensure_can_modify(ElementRef(content, "a"))

        assert exc_info.value.message == "Element cannot be modified because its content is locked."

    def test_unlocked_passes(self, content):
        ensure_can_modify(content)


class TestLockUnlock:
    """Lock and unlock touch exactly one entity."""

    def test_unlock_clears_all_fields(self, collection):
        lock(collection, "bob", "freeze")
        unlock(collection)

        assert collection.is_locked is False
        assert collection.locked_by is None
        assert collection.locked_at is None
        assert collection.lock_reason is None

    def test_lock_sets_timestamp(self, collection):
        before = datetime.now(UTC)
        lock(collection, "bob")
        assert collection.locked_at >= before

    def test_element_lock_rewrites_only_that_node(self, content):
        original_sibling = dict(content.elements[0])
        lock(ElementRef(content, "b"), "carol")

        assert content.elements[0] == original_sibling
        assert content.elements[1]["is_locked"] is False
        assert content.elements[1]["children"][0]["is_locked"] is True
        assert content.elements[1]["children"][0]["locked_by"] == "carol"

    def test_element_unlock(self, content):
        ref = ElementRef(content, "a")
        lock(ref, "carol", "why")
        unlock(ref)

        node = content.elements[0]
        assert node["is_locked"] is False
        assert node["locked_by"] is None
        assert node["lock_reason"] is None
