from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.types import JsonB
from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stratum.db.base import Base
from stratum.db.models.lockable import LockableMixin

if TYPE_CHECKING:
    from stratum.db.models.collection import Collection


class ContentStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Content(LockableMixin, Base):
    """A mutable content document with an embedded element tree."""

    __tablename__ = "contents"
    __table_args__ = (UniqueConstraint("collection_id", "slug"),)

    lock_kind = "content"

    collection_id: Mapped[UUID] = mapped_column(
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Eager so the lock chain can be walked without lazy IO
    collection: Mapped["Collection"] = relationship("Collection", lazy="joined")

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ContentStatus.DRAFT.value)

    # Always equals the highest version_number among this content's versions
    current_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    published_version_id: Mapped[UUID | None] = mapped_column(nullable=True)

    elements: Mapped[list[dict]] = mapped_column(JsonB, nullable=False, default=list)
    meta: Mapped[dict] = mapped_column("metadata", JsonB, nullable=False, default=dict)

    def lock_parent(self):
        return self.collection

    @property
    def is_published(self) -> bool:
        return self.status == ContentStatus.PUBLISHED
