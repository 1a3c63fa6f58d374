"""
Shared columns for main-schema models: UUID key and UTC timestamps.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import Column, DateTime, Uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


class BaseModel:
    """
    Mixin giving a model an ``id`` and ``created_at`` / ``updated_at``.

    Usage:
        class Tenant(BaseModel, db.Model):
            __tablename__ = 'tenants'
    """

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    def to_dict(self, exclude: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """Column values keyed by column name, with UUIDs and datetimes as strings."""
        skipped = set(exclude or ())
        return {
            column.name: _jsonable(getattr(self, column.name, None))
            for column in self.__table__.columns
            if column.name not in skipped
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id}>"
