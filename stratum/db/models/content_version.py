"""Content version model: immutable snapshots of a content document."""

from uuid import UUID

from advanced_alchemy.types import JsonB
from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column

from stratum.db.base import Base


class ContentVersion(Base):
    """Append-only snapshot of a content.

    Rows are never updated except to flip ``is_release_end`` during release
    finalization, and are only deleted by purge or with their content.
    """

    __tablename__ = "content_versions"
    __table_args__ = (UniqueConstraint("content_id", "version_number"),)

    content_id: Mapped[UUID] = mapped_column(
        ForeignKey("contents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Full copy of the element tree and the restorable scalar fields
    elements: Mapped[list[dict]] = mapped_column(JsonB, nullable=False, default=list)
    snapshot: Mapped[dict] = mapped_column(JsonB, nullable=False, default=dict)

    # Release that was current when the version was created
    release: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_release_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    change_note: Mapped[str | None] = mapped_column(Text, nullable=True)
