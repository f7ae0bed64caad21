import uuid
from datetime import datetime, timezone

from sqlalchemy import UUID, Column, DateTime, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class TimestampMixin:
    created_at = Column(DateTime(timezone=True),
                        default=lambda: datetime.now(timezone.utc),
                        server_default=text('CURRENT_TIMESTAMP'))

    updated_at = Column(DateTime(timezone=True),
                        default=lambda: datetime.now(timezone.utc),
                        server_default=text('CURRENT_TIMESTAMP'),
                        onupdate=lambda: datetime.now(timezone.utc))


class Base(DeclarativeBase, TimestampMixin):
    abstract = True
    id: Mapped[uuid.UUID] = mapped_column(
        UUID, primary_key=True, default=uuid.uuid4, sort_order=-1)

    def to_dict(self):
        result = {}
        for c in self.__table__.columns:
            value = getattr(self, c.key, None)
            # Convert UUID objects to strings
            if isinstance(value, uuid.UUID):
                value = str(value)
            result[c.name] = value
        return result
