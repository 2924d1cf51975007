"""Release service: the named release timeline of a collection.

A collection's releases form an append-only list with exactly one current
release. Every content version is tagged with the release that was current
when it was created. Creating a release finalizes the current one by flagging
each content's last version in it as the release end; those flags are what
purge preserves and what as-of-release reads prefer.

Finalize, copy-forward and purge iterate the collection's contents and commit
per content. There is no cross-content transaction, so an interrupted run
leaves a partially processed collection that is safe to run again.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any

from sqlalchemy import ColumnElement, and_, delete, false, func, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from stratum.db.models import DEFAULT_RELEASE, Collection, Content, ContentVersion
from stratum.db.services import version_service
from stratum.lib import observability
from stratum.lib.exceptions import DuplicateRelease, ReleaseNotFound, StratumError
from stratum.lib.hooks import hooks, AFTER_RELEASE_CREATE, AFTER_RELEASE_FINALIZE, AFTER_VERSIONS_PURGE
from stratum.lib.locking import can_modify, ensure_can_modify

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_RELEASE",
    "ReleaseEntry",
    "create_release",
    "finalize_current_release",
    "get_content_for_release",
    "get_contents_for_release",
    "get_content_purge_preview_count",
    "get_purge_preview_count",
    "initialize_collection_release",
    "list_releases",
    "purge_collection_versions",
    "purge_old_versions",
    "release_exists",
    "require_release",
]


@dataclass
class ReleaseEntry:
    """A content paired with the version representing it in a release."""

    content: Content
    version: ContentVersion


def _release_record(name: str, actor: str | None) -> dict[str, Any]:
    return {"name": name, "created_at": datetime.now(UTC).isoformat(), "created_by": actor}


def list_releases(collection: Collection) -> list[dict[str, Any]]:
    """The collection's release timeline, oldest first.

    Collections created before release tracking have an empty list; they are
    treated as sitting on the default release.
    """
    if collection.releases:
        return copy.deepcopy(collection.releases)
    return [{"name": DEFAULT_RELEASE, "created_at": None, "created_by": None}]


def release_names(collection: Collection) -> list[str]:
    return [release["name"] for release in list_releases(collection)]


def release_exists(collection: Collection, release: str) -> bool:
    return release in release_names(collection)


def require_release(collection: Collection, release: str) -> dict[str, Any]:
    """Return the release record or raise ``ReleaseNotFound``."""
    for record in list_releases(collection):
        if record["name"] == release:
            return record
    raise ReleaseNotFound(release, release_names(collection))


async def initialize_collection_release(
    db_session: AsyncSession,
    collection: Collection,
    actor: str | None = None,
    commit: bool = True,
) -> None:
    """Seed the timeline with the default release. No-op once initialized."""
    if collection.current_release:
        return

    collection.current_release = DEFAULT_RELEASE
    collection.releases = [_release_record(DEFAULT_RELEASE, actor)]

    if commit:
        await db_session.commit()
    else:
        await db_session.flush()


async def _collection_contents(db_session: AsyncSession, collection: Collection) -> list[Content]:
    result = await db_session.execute(
        select(Content)
        .where(Content.collection_id == collection.id)
        .order_by(Content.created_at.asc())
    )
    return list(result.scalars().unique().all())


async def _latest_in_release(
    db_session: AsyncSession,
    content: Content,
    release: str,
    release_end_only: bool = False,
) -> ContentVersion | None:
    query = select(ContentVersion).where(
        ContentVersion.content_id == content.id,
        ContentVersion.release == release,
    )
    if release_end_only:
        query = query.where(ContentVersion.is_release_end == true())

    result = await db_session.execute(query.order_by(ContentVersion.version_number.desc()).limit(1))
    return result.scalar_one_or_none()


async def _finalize(db_session: AsyncSession, collection: Collection) -> int:
    release = collection.active_release
    marked = 0

    with observability.span("release.finalize", collection=collection.slug, release=release):
        for content in await _collection_contents(db_session, collection):
            latest = await _latest_in_release(db_session, content, release)
            if latest is None or latest.is_release_end:
                continue
            latest.is_release_end = True
            await db_session.commit()
            marked += 1

    logger.info("Finalized release %s of collection %s: %d versions marked", release, collection.slug, marked)
    await hooks.do_action(AFTER_RELEASE_FINALIZE, collection, release, marked)
    return marked


async def finalize_current_release(db_session: AsyncSession, collection: Collection) -> int:
    """Flag each content's latest version in the current release as the release end.

    Idempotent: versions already flagged are left alone, and contents without
    a version in the current release are skipped.

    Returns:
        Number of versions newly flagged
    """
    ensure_can_modify(collection)
    return await _finalize(db_session, collection)


async def _copy_contents_to_release(
    db_session: AsyncSession,
    collection: Collection,
    release: str,
    actor: str | None,
) -> int:
    copied = 0
    for content in await _collection_contents(db_session, collection):
        source = await version_service.latest_version(db_session, content)
        if source is None:
            continue

        await version_service.bump_version_number(db_session, content)
        db_session.add(
            ContentVersion(
                content_id=content.id,
                version_number=content.current_version,
                elements=copy.deepcopy(source.elements),
                snapshot=copy.deepcopy(source.snapshot),
                release=release,
                is_release_end=False,
                created_by=actor,
                change_note=f"Copied to release: {release}",
            )
        )
        await db_session.commit()
        copied += 1

    return copied


async def create_release(
    db_session: AsyncSession,
    collection: Collection,
    name: str,
    actor: str | None = None,
    copy_contents: bool = False,
) -> Collection:
    """Finalize the current release and open ``name`` as the new current one.

    Args:
        db_session: Database session
        collection: Collection whose timeline advances
        name: Name of the new release, unique within the collection
        actor: Identity recorded as the release creator
        copy_contents: Seed the new release with a copy of every content's
            latest version; otherwise contents join it on their next edit

    Returns:
        The updated collection

    Raises:
        ResourceLocked: The collection is locked
        DuplicateRelease: A release with that name already exists
    """
    ensure_can_modify(collection)

    name = (name or "").strip()
    if not name:
        raise StratumError("Release name is required.")
    if release_exists(collection, name):
        raise DuplicateRelease(name)

    with observability.span("release.create", collection=collection.slug, release=name):
        await _finalize(db_session, collection)

        releases = list_releases(collection)
        releases.append(_release_record(name, actor))
        collection.releases = releases
        collection.current_release = name
        await db_session.commit()

        copied = 0
        if copy_contents:
            copied = await _copy_contents_to_release(db_session, collection, name, actor)

    logger.info("Created release %s for collection %s (%d contents copied)", name, collection.slug, copied)
    await hooks.do_action(AFTER_RELEASE_CREATE, collection, name)

    await db_session.refresh(collection)
    return collection


async def get_content_for_release(
    db_session: AsyncSession,
    content: Content,
    release: str,
) -> ContentVersion | None:
    """The version representing ``content`` in ``release``.

    Prefers the release-end version; falls back to the latest version tagged
    with the release (release not finalized yet, or edited since).
    """
    version = await _latest_in_release(db_session, content, release, release_end_only=True)
    if version is None:
        version = await _latest_in_release(db_session, content, release)
    return version


async def get_contents_for_release(
    db_session: AsyncSession,
    collection: Collection,
    release: str,
) -> list[ReleaseEntry]:
    """Every content of the collection as of ``release``.

    Contents without any version in the release are left out.

    Raises:
        ReleaseNotFound: The release is not part of the collection's timeline
    """
    require_release(collection, release)

    entries = []
    for content in await _collection_contents(db_session, collection):
        version = await get_content_for_release(db_session, content, release)
        if version is not None:
            entries.append(ReleaseEntry(content=content, version=version))
    return entries


def _purgeable(content: Content) -> ColumnElement[bool]:
    """Selection shared by purge and its preview.

    Everything except the content's newest version and its release ends.
    """
    other = aliased(ContentVersion)
    newest = (
        select(func.max(other.version_number))
        .where(other.content_id == content.id)
        .scalar_subquery()
    )
    return and_(
        ContentVersion.content_id == content.id,
        ContentVersion.version_number != newest,
        ContentVersion.is_release_end == false(),
    )


async def _count_purgeable(db_session: AsyncSession, content: Content) -> int:
    result = await db_session.execute(
        select(func.count()).select_from(ContentVersion).where(_purgeable(content))
    )
    return result.scalar() or 0


async def _delete_purgeable(db_session: AsyncSession, content: Content) -> int:
    result = await db_session.execute(
        delete(ContentVersion).where(_purgeable(content)).execution_options(synchronize_session=False)
    )
    await db_session.commit()
    return result.rowcount or 0


async def _purge_targets(db_session: AsyncSession, collection: Collection) -> list[Content]:
    """Contents a collection-wide purge touches; individually locked ones are skipped."""
    return [c for c in await _collection_contents(db_session, collection) if can_modify(c)]


async def get_content_purge_preview_count(db_session: AsyncSession, content: Content) -> int:
    """Number of versions :func:`purge_old_versions` would delete."""
    return await _count_purgeable(db_session, content)


async def purge_old_versions(db_session: AsyncSession, content: Content) -> int:
    """Delete a content's intermediate history.

    The newest version and every release-end version are kept; running it
    again deletes nothing more.

    Returns:
        Number of versions deleted
    """
    ensure_can_modify(content)
    deleted = await _delete_purgeable(db_session, content)
    logger.info("Purged %d versions of content %s", deleted, content.id)
    await hooks.do_action(AFTER_VERSIONS_PURGE, content, deleted)
    return deleted


async def get_purge_preview_count(db_session: AsyncSession, collection: Collection) -> int:
    """Number of versions :func:`purge_collection_versions` would delete."""
    total = 0
    for content in await _purge_targets(db_session, collection):
        total += await _count_purgeable(db_session, content)
    return total


async def purge_collection_versions(db_session: AsyncSession, collection: Collection) -> int:
    """Purge every content of a collection.

    Meant for maintenance runs rather than request handling on large
    collections. Contents locked on their own are skipped.

    Returns:
        Total number of versions deleted
    """
    ensure_can_modify(collection)

    total = 0
    with observability.span("release.purge", collection=collection.slug):
        for content in await _purge_targets(db_session, collection):
            deleted = await _delete_purgeable(db_session, content)
            if deleted:
                await hooks.do_action(AFTER_VERSIONS_PURGE, content, deleted)
            total += deleted

    logger.info("Purged %d versions from collection %s", total, collection.slug)
    observability.info("Purged {count} versions from {collection}", count=total, collection=collection.slug)
    return total
