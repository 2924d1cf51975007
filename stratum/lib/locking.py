"""Hierarchical lock resolution.

Locks are written on a single entity, but enforced down the ownership chain:
a locked collection freezes every content and element beneath it without any
write to those descendants. Resolution walks ``lock_parent()`` from the
entity upward and reports the first locked entity it meets::

    element -> content -> collection

The entity's own lock is reported with source ``"self"``; an ancestor's lock
is reported with the ancestor's ``lock_kind`` (``"content"``,
``"collection"``). Creating new content under a locked collection is not a
modification and is never checked here.

Lock state is read and then acted upon without a transaction, so a write that
passes ``ensure_can_modify`` may still commit after a concurrent lock lands.
"""

import json
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from datetime import datetime, UTC
from typing import Any, Protocol

from stratum.lib import elements as element_tree
from stratum.lib.exceptions import ResourceLocked

SELF = "self"


class Lockable(Protocol):
    lock_kind: str
    is_locked: bool
    locked_by: str | None
    locked_at: Any
    lock_reason: str | None

    def lock_parent(self) -> "Lockable | None": ...

    def set_lock_state(
        self,
        is_locked: bool,
        locked_by: str | None,
        locked_at: datetime | None,
        lock_reason: str | None,
    ) -> None: ...


@dataclass(frozen=True)
class LockInfo:
    is_locked: bool
    locked_by: str | None
    locked_at: str | None
    lock_reason: str | None
    source: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EffectiveLock:
    locked: bool
    source: str | None = None
    info: LockInfo | None = None


def _iso(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ElementRef:
    """A node of a content's embedded element tree, seen as a lockable entity.

    The node's lock fields live inside ``content.elements``; setting them
    rewrites the tree on the content and nothing else.
    """

    lock_kind = "element"

    def __init__(self, content, element_id: str) -> None:
        self.content = content
        self.element_id = element_id
        element_tree.require_element(content.elements or [], element_id)

    @property
    def node(self) -> dict[str, Any]:
        return element_tree.require_element(self.content.elements or [], self.element_id)

    @property
    def is_locked(self) -> bool:
        return bool(self.node.get("is_locked"))

    @property
    def locked_by(self) -> str | None:
        return self.node.get("locked_by")

    @property
    def locked_at(self) -> str | None:
        return self.node.get("locked_at")

    @property
    def lock_reason(self) -> str | None:
        return self.node.get("lock_reason")

    def lock_parent(self):
        return self.content

    def set_lock_state(
        self,
        is_locked: bool,
        locked_by: str | None,
        locked_at: datetime | None,
        lock_reason: str | None,
    ) -> None:
        self.content.elements = element_tree.set_lock_fields(
            self.content.elements or [],
            self.element_id,
            {
                "is_locked": is_locked,
                "locked_by": locked_by,
                "locked_at": _iso(locked_at),
                "lock_reason": lock_reason,
            },
        )


def lock_chain(entity: Lockable) -> Iterator[Lockable]:
    """Yield the entity followed by each of its ancestors."""
    current: Lockable | None = entity
    while current is not None:
        yield current
        current = current.lock_parent()


def effective_lock(entity: Lockable) -> EffectiveLock:
    for depth, candidate in enumerate(lock_chain(entity)):
        if candidate.is_locked:
            source = SELF if depth == 0 else candidate.lock_kind
            info = LockInfo(
                is_locked=True,
                locked_by=candidate.locked_by,
                locked_at=_iso(candidate.locked_at),
                lock_reason=candidate.lock_reason,
                source=source,
            )
            return EffectiveLock(locked=True, source=source, info=info)
    return EffectiveLock(locked=False)


def can_modify(entity: Lockable) -> bool:
    return not effective_lock(entity).locked


def ensure_can_modify(entity: Lockable) -> None:
    """Raise :class:`ResourceLocked` unless the entity may be modified.

    Side-effect free; every mutation entry point calls it before writing.
    """
    lock = effective_lock(entity)
    if not lock.locked:
        return

    kind = entity.lock_kind.capitalize()
    if lock.source == SELF:
        message = f"{kind} is locked and cannot be modified."
    else:
        message = f"{kind} cannot be modified because its {lock.source} is locked."

    raise ResourceLocked(message, lock.info.to_dict())


def lock(entity: Lockable, actor: str | None, reason: str | None = None) -> None:
    """Set the lock fields on this entity only."""
    entity.set_lock_state(True, actor, datetime.now(UTC), reason)


def unlock(entity: Lockable) -> None:
    """Clear the lock fields on this entity only."""
    entity.set_lock_state(False, None, None, None)


def _canonical(node: dict[str, Any]) -> str:
    return json.dumps({k: v for k, v in node.items() if k != "order"}, sort_keys=True, default=str)


def ensure_locked_elements_kept(content, replacement: list[dict[str, Any]]) -> None:
    """Raise :class:`ResourceLocked` if replacing the tree would touch a locked element.

    A locked element must survive the replacement unchanged apart from its
    position among siblings.
    """
    for node in element_tree.iter_elements(content.elements or []):
        if not node.get("is_locked"):
            continue
        kept = element_tree.find_element(replacement, node["id"])
        if kept is None or _canonical(kept) != _canonical(node):
            ensure_can_modify(ElementRef(content, node["id"]))
