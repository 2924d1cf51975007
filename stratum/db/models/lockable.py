"""Lock columns shared by collections and contents."""

from datetime import datetime

from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import Boolean, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column


class LockableMixin:
    """Adds the four lock fields and the in-place setter used by the lock resolver.

    Subclasses set ``lock_kind`` and implement ``lock_parent()``.
    """

    lock_kind: str = "resource"

    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false(), nullable=False)
    locked_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    lock_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def lock_parent(self):
        return None

    def set_lock_state(
        self,
        is_locked: bool,
        locked_by: str | None,
        locked_at: datetime | None,
        lock_reason: str | None,
    ) -> None:
        self.is_locked = is_locked
        self.locked_by = locked_by
        self.locked_at = locked_at
        self.lock_reason = lock_reason
