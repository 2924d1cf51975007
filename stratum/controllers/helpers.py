"""Shared helpers for the JSON API controllers."""

from typing import Any

from litestar import Request

from stratum.db.models import Collection, Content, ContentVersion
from stratum.db.services import release_service
from stratum.lib.locking import effective_lock

ACTOR_HEADER = "x-actor"


def provide_actor(request: Request) -> str | None:
    """Acting identity for audit fields, taken verbatim from ``X-Actor``."""
    return request.headers.get(ACTOR_HEADER) or None


def lock_state(entity: Any) -> dict[str, Any]:
    """The entity's own lock fields plus the effective lock after resolution."""
    locked_at = entity.locked_at
    effective = effective_lock(entity)
    return {
        "is_locked": bool(entity.is_locked),
        "locked_by": entity.locked_by,
        "locked_at": locked_at.isoformat() if hasattr(locked_at, "isoformat") else locked_at,
        "lock_reason": entity.lock_reason,
        "effective": {"locked": effective.locked, "source": effective.source},
    }


def serialize_collection(collection: Collection) -> dict[str, Any]:
    return {
        "id": str(collection.id),
        "name": collection.name,
        "slug": collection.slug,
        "description": collection.description,
        "current_release": collection.active_release,
        "releases": release_service.list_releases(collection),
        "lock": lock_state(collection),
        "created_at": collection.created_at,
        "updated_at": collection.updated_at,
    }


def serialize_content(content: Content) -> dict[str, Any]:
    return {
        "id": str(content.id),
        "collection": content.collection.slug,
        "title": content.title,
        "slug": content.slug,
        "status": content.status,
        "current_version": content.current_version,
        "published_version_id": str(content.published_version_id) if content.published_version_id else None,
        "elements": content.elements,
        "metadata": content.meta,
        "lock": lock_state(content),
        "created_at": content.created_at,
        "updated_at": content.updated_at,
    }


def serialize_content_as_of(content: Content, version: ContentVersion) -> dict[str, Any]:
    """A content rendered from a stored version instead of its live state."""
    snapshot = version.snapshot or {}
    return {
        "id": str(content.id),
        "collection": content.collection.slug,
        "title": snapshot.get("title", content.title),
        "slug": snapshot.get("slug", content.slug),
        "status": snapshot.get("status", content.status),
        "elements": version.elements,
        "metadata": snapshot.get("metadata", {}),
        "version": version.version_number,
        "release": version.release,
        "is_release_end": version.is_release_end,
    }


def serialize_version(version: ContentVersion, diff_summary: dict[str, Any] | None = None) -> dict[str, Any]:
    data = {
        "id": str(version.id),
        "version": version.version_number,
        "release": version.release,
        "is_release_end": version.is_release_end,
        "created_by": version.created_by,
        "change_note": version.change_note,
        "created_at": version.created_at,
        "snapshot": version.snapshot,
        "elements": version.elements,
    }
    if diff_summary is not None:
        data["diff_summary"] = diff_summary
    return data
