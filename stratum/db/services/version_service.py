"""Version service: append-only content history and point-in-time restore."""

import copy
import json
import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stratum.db.models import Content, ContentVersion
from stratum.lib import elements as element_tree
from stratum.lib.exceptions import SlugConflict, VersionNotFound
from stratum.lib.hooks import hooks, AFTER_VERSION_CREATE, AFTER_VERSION_RESTORE, BEFORE_CONTENT_SAVE
from stratum.lib.locking import ensure_can_modify, ensure_locked_elements_kept

logger = logging.getLogger(__name__)


def snapshot_of(content: Content) -> dict[str, Any]:
    """Copy the scalar fields a restore needs."""
    return {
        "title": content.title,
        "slug": content.slug,
        "status": str(content.status),
        "metadata": copy.deepcopy(content.meta or {}),
    }


async def bump_version_number(db_session: AsyncSession, content: Content) -> int:
    """Atomically bump ``content.current_version`` in the database and re-read it.

    The increment is a single ``UPDATE ... SET current_version = current_version + 1``
    so concurrent writers can never be handed the same number. Pending changes
    on the session are flushed first so they share the transaction.

    Returns:
        The post-increment version number
    """
    await db_session.flush()
    result = await db_session.execute(
        update(Content)
        .where(Content.id == content.id)
        .values(current_version=Content.current_version + 1)
        .returning(Content.current_version)
        .execution_options(synchronize_session=False)
    )
    new_number = result.scalar_one()
    await db_session.refresh(content, attribute_names=["current_version"])
    return new_number


async def create_version(
    db_session: AsyncSession,
    content: Content,
    actor: str | None = None,
    change_note: str | None = None,
    increment_version: bool = True,
    commit: bool = True,
) -> ContentVersion:
    """Append a version snapshotting the content's current state.

    The live-document write, the version increment and the version row are
    committed together, so a crash can't leave a bumped ``current_version``
    without its version.

    Args:
        db_session: Database session
        content: The content to snapshot (its pending changes are flushed)
        actor: Identity of whoever made the change
        change_note: Free-form description of the change
        increment_version: False only for the very first version of new content
        commit: Commit the transaction (False lets callers batch further writes)

    Returns:
        The created ContentVersion
    """
    if increment_version:
        await bump_version_number(db_session, content)
    else:
        await db_session.flush()

    version = ContentVersion(
        content_id=content.id,
        version_number=content.current_version,
        elements=copy.deepcopy(content.elements or []),
        snapshot=snapshot_of(content),
        release=content.collection.active_release,
        is_release_end=False,
        created_by=actor,
        change_note=change_note,
    )
    db_session.add(version)

    if commit:
        await db_session.commit()
        await db_session.refresh(version)
    else:
        await db_session.flush()

    logger.debug(
        "Created version %s of content %s in release %s",
        version.version_number,
        content.id,
        version.release,
    )
    await hooks.do_action(AFTER_VERSION_CREATE, version, content)

    return version


async def get_version(
    db_session: AsyncSession,
    content: Content,
    version_number: int,
) -> ContentVersion | None:
    result = await db_session.execute(
        select(ContentVersion).where(
            ContentVersion.content_id == content.id,
            ContentVersion.version_number == version_number,
        )
    )
    return result.scalar_one_or_none()


async def require_version(
    db_session: AsyncSession,
    content: Content,
    version_number: int,
) -> ContentVersion:
    """Like :func:`get_version` but raises ``VersionNotFound`` when absent."""
    version = await get_version(db_session, content, version_number)
    if version is None:
        raise VersionNotFound(version_number)
    return version


async def latest_version(db_session: AsyncSession, content: Content) -> ContentVersion | None:
    """The version with the highest number, regardless of release."""
    result = await db_session.execute(
        select(ContentVersion)
        .where(ContentVersion.content_id == content.id)
        .order_by(ContentVersion.version_number.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_version_history(
    db_session: AsyncSession,
    content: Content,
    limit: int | None = None,
) -> list[ContentVersion]:
    """List versions for a content, newest first.

    Args:
        db_session: Database session
        content: The content to get versions for
        limit: Maximum number of versions to return (None for all)

    Returns:
        List of ContentVersion objects ordered by version_number descending
    """
    query = (
        select(ContentVersion)
        .where(ContentVersion.content_id == content.id)
        .order_by(ContentVersion.version_number.desc())
    )

    if limit:
        query = query.limit(limit)

    result = await db_session.execute(query)
    return list(result.scalars().all())


async def restore_version(
    db_session: AsyncSession,
    content: Content,
    version_number: int,
    actor: str | None = None,
) -> Content:
    """Restore a content's live state from an earlier version.

    Copies the stored element tree and title/slug/metadata forward onto the
    live content and appends a new version noting the restore. History is
    never truncated or renumbered, and the restored version itself is left
    untouched.

    Raises:
        ResourceLocked: The content, its collection, or a locked element the restore would change
        VersionNotFound: No version with that number exists for the content
        SlugConflict: The stored slug now belongs to another content
    """
    from stratum.db.services.content_service import slug_taken

    ensure_can_modify(content)
    version = await require_version(db_session, content, version_number)

    # Lock state is current, never historical
    elements = element_tree.carry_lock_fields(content.elements or [], version.elements or [])
    ensure_locked_elements_kept(content, elements)

    snapshot = version.snapshot or {}
    slug = snapshot.get("slug")
    if slug is not None and slug != content.slug:
        if await slug_taken(db_session, content.collection_id, slug, exclude_id=content.id):
            raise SlugConflict(slug)

    await hooks.do_action(BEFORE_CONTENT_SAVE, content, is_new=False)

    content.elements = elements
    if snapshot.get("title") is not None:
        content.title = snapshot["title"]
    if slug is not None:
        content.slug = slug
    if snapshot.get("metadata") is not None:
        content.meta = copy.deepcopy(snapshot["metadata"])

    await create_version(db_session, content, actor, f"Restored to version {version_number}")
    logger.info("Restored content %s to version %s", content.id, version_number)

    await hooks.do_action(AFTER_VERSION_RESTORE, content, version)
    return content


def _serialize(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def calculate_changes(from_elements: list[dict], to_elements: list[dict]) -> dict[str, list]:
    """Flat diff of two element lists keyed by top-level element id.

    Nested children are not diffed on their own; a change anywhere below a
    top-level element shows up as that element being modified.
    """
    from_by_id = {node.get("id"): node for node in from_elements or []}
    to_by_id = {node.get("id"): node for node in to_elements or []}

    added = [node for key, node in to_by_id.items() if key not in from_by_id]
    removed = [node for key, node in from_by_id.items() if key not in to_by_id]
    modified = [
        {"id": key, "from": from_by_id[key], "to": node}
        for key, node in to_by_id.items()
        if key in from_by_id and _serialize(from_by_id[key]) != _serialize(node)
    ]

    return {"added": added, "removed": removed, "modified": modified}


def _version_payload(version: ContentVersion) -> dict[str, Any]:
    return {
        "version": version.version_number,
        "elements": version.elements,
        "snapshot": version.snapshot,
        "release": version.release,
        "is_release_end": version.is_release_end,
        "created_at": version.created_at,
    }


async def compare_versions(
    db_session: AsyncSession,
    content: Content,
    from_version: int,
    to_version: int,
) -> dict[str, Any]:
    """Return both snapshots plus the added/removed/modified element diff."""
    source = await require_version(db_session, content, from_version)
    target = await require_version(db_session, content, to_version)

    return {
        "from": _version_payload(source),
        "to": _version_payload(target),
        "changes": calculate_changes(source.elements, target.elements),
    }


def get_version_diff_summary(
    version: ContentVersion,
    previous: ContentVersion | None = None,
) -> dict[str, Any]:
    """Counts of element changes against the previous version.

    The first version of a content reports every element as added.
    """
    if previous is None:
        return {
            "added": len(version.elements or []),
            "removed": 0,
            "modified": 0,
            "title_changed": False,
        }

    changes = calculate_changes(previous.elements, version.elements)
    title_changed = (previous.snapshot or {}).get("title", "") != (version.snapshot or {}).get("title", "")

    return {
        "added": len(changes["added"]),
        "removed": len(changes["removed"]),
        "modified": len(changes["modified"]),
        "title_changed": title_changed,
    }


async def get_enhanced_version_history(
    db_session: AsyncSession,
    content: Content,
) -> list[dict[str, Any]]:
    """Version history, newest first, each entry paired with its diff summary.

    Diffs are taken against the next older surviving version, so after a
    purge they span the reclaimed history.
    """
    versions = await get_version_history(db_session, content)

    entries = []
    previous = None
    for version in reversed(versions):
        entries.append({"version": version, "diff_summary": get_version_diff_summary(version, previous)})
        previous = version

    entries.reverse()
    return entries


async def get_version_with_diff(
    db_session: AsyncSession,
    content: Content,
    version_number: int,
) -> dict[str, Any]:
    """One version with its diff summary against the closest older version."""
    version = await require_version(db_session, content, version_number)

    result = await db_session.execute(
        select(ContentVersion)
        .where(
            ContentVersion.content_id == content.id,
            ContentVersion.version_number < version_number,
        )
        .order_by(ContentVersion.version_number.desc())
        .limit(1)
    )
    previous = result.scalar_one_or_none()

    return {"version": version, "diff_summary": get_version_diff_summary(version, previous)}
