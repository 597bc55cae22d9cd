"""
Database subsystem: declarative base, mixins and the DatabaseService.
"""

from valor.core.database.base import Base, IdMixin, TimestampMixin, as_utc, new_id, utc_now
from valor.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "as_utc",
    "new_id",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
