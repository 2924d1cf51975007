"""Content, element and lock endpoints."""

from typing import Any
from uuid import UUID

from litestar import Controller, get, patch, post, delete
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from stratum.controllers.helpers import lock_state, serialize_content, serialize_content_as_of
from stratum.db.services import content_service, lock_service, release_service
from stratum.lib.exceptions import ContentNotFound


class ContentUpdate(BaseModel):
    title: str | None = None
    slug: str | None = None
    metadata: dict[str, Any] | None = None
    elements: list[dict[str, Any]] | None = None
    change_note: str | None = None


class ElementCreate(BaseModel):
    type: str
    data: dict[str, Any] | None = None
    parent_id: str | None = None
    order: int | None = None


class ElementUpdate(BaseModel):
    type: str | None = None
    data: dict[str, Any] | None = None
    order: int | None = None


class ElementMove(BaseModel):
    parent_id: str | None = None
    order: int = 0


def _element_response(content, node: dict[str, Any]) -> dict[str, Any]:
    return {"element": node, "content_id": str(content.id), "current_version": content.current_version}


class ContentController(Controller):
    path = "/api/v1/contents"

    @get("/{content_id:uuid}")
    async def show_content(
        self, db_session: AsyncSession, content_id: UUID, release: str | None = None
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        if not release:
            return serialize_content(content)

        release_service.require_release(content.collection, release)
        version = await release_service.get_content_for_release(db_session, content, release)
        if version is None:
            raise ContentNotFound(f"Content has no version in release '{release}'.")
        return serialize_content_as_of(content, version)

    @patch("/{content_id:uuid}")
    async def update_content(
        self, db_session: AsyncSession, content_id: UUID, data: ContentUpdate, actor: str | None
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        content = await content_service.update_content(
            db_session,
            content,
            title=data.title,
            slug=data.slug,
            metadata=data.metadata,
            elements=data.elements,
            actor=actor,
            change_note=data.change_note,
        )
        return serialize_content(content)

    @delete("/{content_id:uuid}")
    async def delete_content(self, db_session: AsyncSession, content_id: UUID) -> None:
        content = await content_service.get_content(db_session, content_id)
        await content_service.delete_content(db_session, content)

    @post("/{content_id:uuid}/publish", status_code=200)
    async def publish(self, db_session: AsyncSession, content_id: UUID, actor: str | None) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        return serialize_content(await content_service.publish_content(db_session, content, actor))

    @post("/{content_id:uuid}/unpublish", status_code=200)
    async def unpublish(self, db_session: AsyncSession, content_id: UUID, actor: str | None) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        return serialize_content(await content_service.unpublish_content(db_session, content, actor))

    @post("/{content_id:uuid}/archive", status_code=200)
    async def archive(self, db_session: AsyncSession, content_id: UUID, actor: str | None) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        return serialize_content(await content_service.archive_content(db_session, content, actor))

    @post("/{content_id:uuid}/lock", status_code=200)
    async def lock_content(
        self, db_session: AsyncSession, content_id: UUID, actor: str | None, reason: str | None = None
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        await lock_service.lock_content(db_session, content, actor, reason)
        return serialize_content(content)

    @delete("/{content_id:uuid}/lock", status_code=200)
    async def unlock_content(self, db_session: AsyncSession, content_id: UUID) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        await lock_service.unlock_content(db_session, content)
        return serialize_content(content)

    @post("/{content_id:uuid}/elements")
    async def add_element(
        self, db_session: AsyncSession, content_id: UUID, data: ElementCreate, actor: str | None
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        node = await content_service.add_element(
            db_session, content, data.type, data.data, data.parent_id, data.order, actor
        )
        return _element_response(content, node)

    @patch("/{content_id:uuid}/elements/{element_id:str}")
    async def update_element(
        self,
        db_session: AsyncSession,
        content_id: UUID,
        element_id: str,
        data: ElementUpdate,
        actor: str | None,
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        node = await content_service.update_element(
            db_session, content, element_id, data.type, data.data, data.order, actor
        )
        return _element_response(content, node)

    @delete("/{content_id:uuid}/elements/{element_id:str}", status_code=200)
    async def delete_element(
        self, db_session: AsyncSession, content_id: UUID, element_id: str, actor: str | None
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        node = await content_service.delete_element(db_session, content, element_id, actor)
        return _element_response(content, node)

    @post("/{content_id:uuid}/elements/{element_id:str}/move", status_code=200)
    async def move_element(
        self,
        db_session: AsyncSession,
        content_id: UUID,
        element_id: str,
        data: ElementMove,
        actor: str | None,
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        node = await content_service.move_element(
            db_session, content, element_id, data.parent_id, data.order, actor
        )
        return _element_response(content, node)

    @post("/{content_id:uuid}/elements/{element_id:str}/lock", status_code=200)
    async def lock_element(
        self,
        db_session: AsyncSession,
        content_id: UUID,
        element_id: str,
        actor: str | None,
        reason: str | None = None,
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        ref = await lock_service.lock_element(db_session, content, element_id, actor, reason)
        return {"element_id": element_id, "lock": lock_state(ref)}

    @delete("/{content_id:uuid}/elements/{element_id:str}/lock", status_code=200)
    async def unlock_element(
        self, db_session: AsyncSession, content_id: UUID, element_id: str
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        ref = await lock_service.unlock_element(db_session, content, element_id)
        return {"element_id": element_id, "lock": lock_state(ref)}

    @post("/{content_id:uuid}/purge", status_code=200)
    async def purge(self, db_session: AsyncSession, content_id: UUID) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        deleted = await release_service.purge_old_versions(db_session, content)
        return {"deleted": deleted}
