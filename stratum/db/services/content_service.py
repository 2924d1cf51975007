"""Content service: the write paths of a content document.

Every mutation follows the same sequence: check the lock chain, write the live
document, append a version. The live write, the version increment and the
version row are committed together by ``version_service.create_version``.
"""

import copy
import re
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from stratum.db.models import Collection, Content, ContentStatus, ContentVersion
from stratum.db.services import version_service
from stratum.lib import elements as element_tree
from stratum.lib.exceptions import ContentNotFound, SlugConflict
from stratum.lib.hooks import hooks, BEFORE_CONTENT_SAVE, AFTER_CONTENT_SAVE, BEFORE_CONTENT_DELETE, AFTER_CONTENT_DELETE
from stratum.lib.locking import ElementRef, ensure_can_modify, ensure_locked_elements_kept


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return slug or uuid4().hex[:8]


async def slug_taken(
    db_session: AsyncSession,
    collection_id: UUID,
    slug: str,
    exclude_id: UUID | None = None,
) -> bool:
    query = select(Content.id).where(Content.collection_id == collection_id, Content.slug == slug)
    if exclude_id is not None:
        query = query.where(Content.id != exclude_id)
    result = await db_session.execute(query)
    return result.first() is not None


async def _unique_slug(db_session: AsyncSession, collection_id: UUID, base: str) -> str:
    slug = base
    suffix = 2
    while await slug_taken(db_session, collection_id, slug):
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


async def _save(
    db_session: AsyncSession,
    content: Content,
    actor: str | None,
    change_note: str | None,
) -> ContentVersion:
    version = await version_service.create_version(db_session, content, actor, change_note)
    await hooks.do_action(AFTER_CONTENT_SAVE, content, is_new=False)
    return version


async def create_content(
    db_session: AsyncSession,
    collection: Collection,
    title: str,
    slug: str | None = None,
    metadata: dict[str, Any] | None = None,
    elements: list[dict[str, Any]] | None = None,
    actor: str | None = None,
) -> Content:
    """Create a content document together with its first version.

    Creating is not a modification of the collection, so a locked collection
    still accepts new contents.

    Args:
        db_session: Database session
        collection: Owning collection
        title: Content title
        slug: Slug unique within the collection (derived from the title when omitted)
        metadata: Free-form metadata map
        elements: Initial element tree
        actor: Identity of the creator

    Returns:
        Created Content object, at version 1

    Raises:
        SlugConflict: An explicit slug is already used in the collection
        InvalidElement: The element tree breaks the element rules
    """
    if slug:
        if await slug_taken(db_session, collection.id, slug):
            raise SlugConflict(slug)
    else:
        slug = await _unique_slug(db_session, collection.id, slugify(title))

    content = Content(
        collection_id=collection.id,
        collection=collection,
        title=title,
        slug=slug,
        status=ContentStatus.DRAFT.value,
        current_version=1,
        elements=element_tree.carry_lock_fields([], element_tree.normalize_tree(elements or [])),
        meta=copy.deepcopy(metadata) if metadata else {},
    )

    await hooks.do_action(BEFORE_CONTENT_SAVE, content, is_new=True)

    db_session.add(content)
    await version_service.create_version(
        db_session,
        content,
        actor,
        "Initial version",
        increment_version=False,
    )

    await hooks.do_action(AFTER_CONTENT_SAVE, content, is_new=True)
    return content


async def get_content(db_session: AsyncSession, content_id: UUID) -> Content:
    result = await db_session.execute(select(Content).where(Content.id == content_id))
    content = result.scalar_one_or_none()
    if content is None:
        raise ContentNotFound()
    return content


async def list_contents(
    db_session: AsyncSession,
    collection: Collection,
    status: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[Content]:
    """List a collection's contents, oldest first.

    Args:
        db_session: Database session
        collection: Owning collection
        status: Only return contents in this status
        limit: Maximum number of results
        offset: Number of results to skip

    Returns:
        List of Content objects
    """
    query = select(Content).where(Content.collection_id == collection.id)
    if status:
        query = query.where(Content.status == status)

    query = query.order_by(Content.created_at.asc())

    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)

    result = await db_session.execute(query)
    return list(result.scalars().unique().all())


async def update_content(
    db_session: AsyncSession,
    content: Content,
    title: str | None = None,
    slug: str | None = None,
    metadata: dict[str, Any] | None = None,
    elements: list[dict[str, Any]] | None = None,
    actor: str | None = None,
    change_note: str | None = None,
) -> Content:
    """Update title, slug, metadata and/or the whole element tree.

    Only fields that actually differ are written; when nothing differs no
    version is appended. Replacing the element tree may not change or drop a
    locked element.

    Raises:
        ResourceLocked: The content, its collection, or a replaced element is locked
        SlugConflict: The new slug is already used in the collection
        InvalidElement: The element tree breaks the element rules
    """
    ensure_can_modify(content)

    changes: dict[str, Any] = {}
    if title is not None and title != content.title:
        changes["title"] = title
    if slug is not None and slug != content.slug:
        if await slug_taken(db_session, content.collection_id, slug, exclude_id=content.id):
            raise SlugConflict(slug)
        changes["slug"] = slug
    if metadata is not None and metadata != (content.meta or {}):
        changes["meta"] = copy.deepcopy(metadata)
    if elements is not None:
        replacement = element_tree.carry_lock_fields(content.elements or [], element_tree.normalize_tree(elements))
        if replacement != (content.elements or []):
            ensure_locked_elements_kept(content, replacement)
            changes["elements"] = replacement

    if not changes:
        return content

    await hooks.do_action(BEFORE_CONTENT_SAVE, content, is_new=False)

    for key, value in changes.items():
        setattr(content, key, value)

    await _save(db_session, content, actor, change_note or "Updated content")
    return content


async def _set_status(
    db_session: AsyncSession,
    content: Content,
    status: ContentStatus,
    actor: str | None,
    change_note: str,
) -> Content:
    await hooks.do_action(BEFORE_CONTENT_SAVE, content, is_new=False)
    content.status = status.value
    await _save(db_session, content, actor, change_note)
    return content


async def publish_content(db_session: AsyncSession, content: Content, actor: str | None = None) -> Content:
    """Publish the content as it stands now.

    ``published_version_id`` points at the version holding the state being
    published, i.e. the latest version before the status change is recorded.
    """
    ensure_can_modify(content)

    latest = await version_service.latest_version(db_session, content)
    content.published_version_id = latest.id if latest else None
    return await _set_status(db_session, content, ContentStatus.PUBLISHED, actor, "Published")


async def unpublish_content(db_session: AsyncSession, content: Content, actor: str | None = None) -> Content:
    ensure_can_modify(content)
    if content.status == ContentStatus.DRAFT:
        return content

    content.published_version_id = None
    return await _set_status(db_session, content, ContentStatus.DRAFT, actor, "Unpublished")


async def archive_content(db_session: AsyncSession, content: Content, actor: str | None = None) -> Content:
    ensure_can_modify(content)
    if content.status == ContentStatus.ARCHIVED:
        return content

    content.published_version_id = None
    return await _set_status(db_session, content, ContentStatus.ARCHIVED, actor, "Archived")


async def delete_content(db_session: AsyncSession, content: Content) -> None:
    """Delete a content and its whole version history."""
    ensure_can_modify(content)

    await hooks.do_action(BEFORE_CONTENT_DELETE, content)

    # Explicit so history goes even where the database skips FK cascades
    await db_session.execute(delete(ContentVersion).where(ContentVersion.content_id == content.id))
    await db_session.delete(content)
    await db_session.commit()

    await hooks.do_action(AFTER_CONTENT_DELETE, content)


async def add_element(
    db_session: AsyncSession,
    content: Content,
    element_type: str,
    data: dict[str, Any] | None = None,
    parent_id: str | None = None,
    order: int | None = None,
    actor: str | None = None,
) -> dict[str, Any]:
    """Add a new element at the root or inside a wrapper.

    Returns:
        The stored element node

    Raises:
        ResourceLocked: The content chain, or the target wrapper, is locked
        ElementNotFound: ``parent_id`` does not exist
        InvalidElement: Unknown type, or the parent is not a wrapper
    """
    ensure_can_modify(content)
    if parent_id is not None:
        ensure_can_modify(ElementRef(content, parent_id))

    node = element_tree.new_element(element_type, data)
    tree = element_tree.insert_element(content.elements or [], node, parent_id, order)

    await hooks.do_action(BEFORE_CONTENT_SAVE, content, is_new=False)
    content.elements = tree
    await _save(db_session, content, actor, f"Added {node['type']} element")

    return element_tree.require_element(content.elements, node["id"])


async def update_element(
    db_session: AsyncSession,
    content: Content,
    element_id: str,
    element_type: str | None = None,
    data: dict[str, Any] | None = None,
    order: int | None = None,
    actor: str | None = None,
) -> dict[str, Any]:
    """Change an element's type, data and/or position among its siblings."""
    ensure_can_modify(ElementRef(content, element_id))

    tree = element_tree.update_element(
        content.elements or [],
        element_id,
        {"type": element_type, "data": data, "order": order},
    )
    if tree != (content.elements or []):
        await hooks.do_action(BEFORE_CONTENT_SAVE, content, is_new=False)
        content.elements = tree
        await _save(db_session, content, actor, "Updated element")

    return element_tree.require_element(content.elements, element_id)


async def delete_element(
    db_session: AsyncSession,
    content: Content,
    element_id: str,
    actor: str | None = None,
) -> dict[str, Any]:
    """Remove an element and its subtree.

    A locked element anywhere in the subtree blocks the removal.
    """
    ensure_can_modify(ElementRef(content, element_id))

    tree, removed = element_tree.remove_element(content.elements or [], element_id)
    for node in element_tree.iter_elements(removed.get("children") or []):
        ensure_can_modify(ElementRef(content, node["id"]))

    await hooks.do_action(BEFORE_CONTENT_SAVE, content, is_new=False)
    content.elements = tree
    await _save(db_session, content, actor, f"Deleted {removed['type']} element")

    return removed


async def move_element(
    db_session: AsyncSession,
    content: Content,
    element_id: str,
    parent_id: str | None,
    order: int,
    actor: str | None = None,
) -> dict[str, Any]:
    """Move an element (with its subtree) under ``parent_id`` at ``order``.

    Raises:
        ResourceLocked: The element, or the target wrapper, is locked
        InvalidElement: The target is not a wrapper, or lies inside the moved element
    """
    ensure_can_modify(ElementRef(content, element_id))
    if parent_id is not None:
        ensure_can_modify(ElementRef(content, parent_id))

    tree = element_tree.move_element(content.elements or [], element_id, parent_id, order)
    if tree != (content.elements or []):
        await hooks.do_action(BEFORE_CONTENT_SAVE, content, is_new=False)
        content.elements = tree
        await _save(db_session, content, actor, "Moved element")

    return element_tree.require_element(content.elements, element_id)
