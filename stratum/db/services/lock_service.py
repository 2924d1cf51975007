"""Persisting lock changes.

Locks apply to exactly the entity they are set on; descendants are frozen by
resolution, never by writes. Element locks live inside the content's element
tree and are not content edits, so they append no version.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from stratum.db.models import Collection, Content
from stratum.lib import locking
from stratum.lib.hooks import hooks, AFTER_LOCK_CHANGE
from stratum.lib.locking import ElementRef, Lockable

logger = logging.getLogger(__name__)


async def _apply(
    db_session: AsyncSession,
    entity: Lockable,
    locked: bool,
    actor: str | None = None,
    reason: str | None = None,
) -> None:
    if locked:
        locking.lock(entity, actor, reason)
    else:
        locking.unlock(entity)

    await db_session.commit()

    logger.info("%s %s by %s", entity.lock_kind.capitalize(), "locked" if locked else "unlocked", actor or "unknown")
    await hooks.do_action(AFTER_LOCK_CHANGE, entity, locked)


async def lock_collection(
    db_session: AsyncSession,
    collection: Collection,
    actor: str | None = None,
    reason: str | None = None,
) -> Collection:
    await _apply(db_session, collection, True, actor, reason)
    return collection


async def unlock_collection(db_session: AsyncSession, collection: Collection) -> Collection:
    await _apply(db_session, collection, False)
    return collection


async def lock_content(
    db_session: AsyncSession,
    content: Content,
    actor: str | None = None,
    reason: str | None = None,
) -> Content:
    await _apply(db_session, content, True, actor, reason)
    return content


async def unlock_content(db_session: AsyncSession, content: Content) -> Content:
    await _apply(db_session, content, False)
    return content


async def lock_element(
    db_session: AsyncSession,
    content: Content,
    element_id: str,
    actor: str | None = None,
    reason: str | None = None,
) -> ElementRef:
    ref = ElementRef(content, element_id)
    await _apply(db_session, ref, True, actor, reason)
    return ref


async def unlock_element(db_session: AsyncSession, content: Content, element_id: str) -> ElementRef:
    ref = ElementRef(content, element_id)
    await _apply(db_session, ref, False)
    return ref
