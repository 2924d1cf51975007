"""Collection service for CRUD operations on collections."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stratum.db.models import Collection
from stratum.db.services import release_service
from stratum.db.services.content_service import slugify
from stratum.lib.exceptions import CollectionNotFound, SlugConflict
from stratum.lib.locking import ensure_can_modify

_UNSET = object()  # Sentinel for distinguishing None from "not provided"


async def list_collections(db_session: AsyncSession) -> list[Collection]:
    result = await db_session.execute(select(Collection).order_by(Collection.name.asc()))
    return list(result.scalars().all())


async def get_collection_by_slug(db_session: AsyncSession, slug: str) -> Collection:
    """Get a collection by slug, raising ``CollectionNotFound`` when absent."""
    result = await db_session.execute(select(Collection).where(Collection.slug == slug))
    collection = result.scalar_one_or_none()
    if collection is None:
        raise CollectionNotFound(f"Collection '{slug}' not found.")
    return collection


async def create_collection(
    db_session: AsyncSession,
    name: str,
    slug: str | None = None,
    description: str | None = None,
    actor: str | None = None,
) -> Collection:
    """Create a collection sitting on the default release.

    Args:
        db_session: Database session
        name: Display name
        slug: Unique slug (derived from the name when omitted)
        description: Optional description
        actor: Recorded as creator of the default release

    Returns:
        Created Collection object
    """
    slug = slug or slugify(name)
    existing = await db_session.execute(select(Collection.id).where(Collection.slug == slug))
    if existing.first() is not None:
        raise SlugConflict(slug)

    collection = Collection(name=name, slug=slug, description=description, releases=[])
    db_session.add(collection)
    await release_service.initialize_collection_release(db_session, collection, actor)
    await db_session.refresh(collection)

    return collection


async def update_collection(
    db_session: AsyncSession,
    collection: Collection,
    name: str | None = None,
    description: str | None | object = _UNSET,
) -> Collection:
    """Rename or re-describe a collection. The slug is permanent."""
    ensure_can_modify(collection)

    if name is not None:
        collection.name = name
    if description is not _UNSET:
        collection.description = description

    await db_session.commit()
    await db_session.refresh(collection)
    return collection
