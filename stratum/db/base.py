from advanced_alchemy.base import UUIDAuditBase


class Base(UUIDAuditBase):
    """Declarative base for all Stratum models.

    Provides a UUID primary key plus ``created_at``/``updated_at`` audit columns.
    """

    __abstract__ = True
