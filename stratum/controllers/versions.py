"""Version history, comparison and restore endpoints."""

from typing import Annotated, Any
from uuid import UUID

from litestar import Controller, get, post
from litestar.params import Parameter
from sqlalchemy.ext.asyncio import AsyncSession

from stratum.controllers.helpers import serialize_content, serialize_version
from stratum.db.services import content_service, version_service


class VersionController(Controller):
    path = "/api/v1/contents/{content_id:uuid}/versions"

    @get("/")
    async def history(self, db_session: AsyncSession, content_id: UUID) -> list[dict[str, Any]]:
        """Every surviving version, newest first, with its diff summary."""
        content = await content_service.get_content(db_session, content_id)
        entries = await version_service.get_enhanced_version_history(db_session, content)
        return [serialize_version(entry["version"], entry["diff_summary"]) for entry in entries]

    @get("/compare")
    async def compare(
        self,
        db_session: AsyncSession,
        content_id: UUID,
        from_version: Annotated[int, Parameter(query="from")],
        to_version: Annotated[int, Parameter(query="to")],
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        return await version_service.compare_versions(db_session, content, from_version, to_version)

    @get("/{version_number:int}")
    async def show(self, db_session: AsyncSession, content_id: UUID, version_number: int) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        result = await version_service.get_version_with_diff(db_session, content, version_number)
        return serialize_version(result["version"], result["diff_summary"])

    @post("/{version_number:int}/restore", status_code=200)
    async def restore(
        self, db_session: AsyncSession, content_id: UUID, version_number: int, actor: str | None
    ) -> dict[str, Any]:
        content = await content_service.get_content(db_session, content_id)
        content = await version_service.restore_version(db_session, content, version_number, actor)
        return serialize_content(content)
