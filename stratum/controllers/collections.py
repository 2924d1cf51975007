"""Collection, release and purge endpoints."""

from typing import Any

from litestar import Controller, get, patch, post, delete
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from stratum.controllers.helpers import serialize_collection, serialize_content, serialize_content_as_of
from stratum.db.services import collection_service, content_service, lock_service, release_service
from stratum.lib.exceptions import DuplicateRelease


class CollectionCreate(BaseModel):
    name: str
    slug: str | None = None
    description: str | None = None


class CollectionUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class ContentCreate(BaseModel):
    title: str
    slug: str | None = None
    metadata: dict[str, Any] | None = None
    elements: list[dict[str, Any]] | None = None


class ReleaseCreate(BaseModel):
    name: str
    copy_contents: bool = False


class CollectionController(Controller):
    path = "/api/v1/collections"

    @get("/")
    async def list_collections(self, db_session: AsyncSession) -> list[dict[str, Any]]:
        collections = await collection_service.list_collections(db_session)
        return [serialize_collection(c) for c in collections]

    @post("/")
    async def create_collection(
        self, db_session: AsyncSession, data: CollectionCreate, actor: str | None
    ) -> dict[str, Any]:
        collection = await collection_service.create_collection(
            db_session, data.name, data.slug, data.description, actor
        )
        return serialize_collection(collection)

    @get("/{slug:str}")
    async def show_collection(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        return serialize_collection(collection)

    @patch("/{slug:str}")
    async def update_collection(
        self, db_session: AsyncSession, slug: str, data: CollectionUpdate
    ) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        kwargs: dict[str, Any] = {"name": data.name}
        if "description" in data.model_fields_set:
            kwargs["description"] = data.description
        collection = await collection_service.update_collection(db_session, collection, **kwargs)
        return serialize_collection(collection)

    @post("/{slug:str}/lock", status_code=200)
    async def lock_collection(
        self, db_session: AsyncSession, slug: str, actor: str | None, reason: str | None = None
    ) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        await lock_service.lock_collection(db_session, collection, actor, reason)
        return serialize_collection(collection)

    @delete("/{slug:str}/lock", status_code=200)
    async def unlock_collection(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        await lock_service.unlock_collection(db_session, collection)
        return serialize_collection(collection)

    @get("/{slug:str}/contents")
    async def list_contents(
        self,
        db_session: AsyncSession,
        slug: str,
        release: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        """Live contents, or every content as it stood in ``release``."""
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        if release:
            entries = await release_service.get_contents_for_release(db_session, collection, release)
            return [serialize_content_as_of(entry.content, entry.version) for entry in entries]

        contents = await content_service.list_contents(db_session, collection, status=status)
        return [serialize_content(c) for c in contents]

    @post("/{slug:str}/contents")
    async def create_content(
        self, db_session: AsyncSession, slug: str, data: ContentCreate, actor: str | None
    ) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        content = await content_service.create_content(
            db_session,
            collection,
            data.title,
            slug=data.slug,
            metadata=data.metadata,
            elements=data.elements,
            actor=actor,
        )
        return serialize_content(content)

    @get("/{slug:str}/releases")
    async def list_releases(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        return {
            "current_release": collection.active_release,
            "releases": release_service.list_releases(collection),
        }

    @post("/{slug:str}/releases")
    async def create_release(
        self, db_session: AsyncSession, slug: str, data: ReleaseCreate, actor: str | None
    ) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        if release_service.release_exists(collection, data.name.strip()):
            raise DuplicateRelease(data.name.strip())

        collection = await release_service.create_release(
            db_session, collection, data.name, actor, copy_contents=data.copy_contents
        )
        return serialize_collection(collection)

    @post("/{slug:str}/releases/finalize", status_code=200)
    async def finalize_release(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        marked = await release_service.finalize_current_release(db_session, collection)
        return {"release": collection.active_release, "marked": marked}

    @get("/{slug:str}/purge")
    async def purge_preview(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        count = await release_service.get_purge_preview_count(db_session, collection)
        return {"count": count}

    @post("/{slug:str}/purge", status_code=200)
    async def purge(self, db_session: AsyncSession, slug: str) -> dict[str, Any]:
        collection = await collection_service.get_collection_by_slug(db_session, slug)
        deleted = await release_service.purge_collection_versions(db_session, collection)
        return {"deleted": deleted}
