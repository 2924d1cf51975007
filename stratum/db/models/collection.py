from advanced_alchemy.types import JsonB
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stratum.db.base import Base
from stratum.db.models.lockable import LockableMixin

# Release every collection starts on, and the fallback when none is recorded
DEFAULT_RELEASE = "Basis"


class Collection(LockableMixin, Base):
    """A group of contents sharing one release timeline."""

    __tablename__ = "collections"

    lock_kind = "collection"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Release timeline: ordered, append-only list of {name, created_at, created_by}
    current_release: Mapped[str | None] = mapped_column(String(255), nullable=True)
    releases: Mapped[list[dict]] = mapped_column(JsonB, nullable=False, default=list)

    @property
    def active_release(self) -> str:
        return self.current_release or DEFAULT_RELEASE
