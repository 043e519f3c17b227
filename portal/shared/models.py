import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Uuid, Enum as SAEnum


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UUIDMixin:
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

class AuditMixin(UUIDMixin, TimestampMixin):
    """Combines UUID and Timestamps for standard entities."""
    pass


def value_enum(enum_cls, name: str) -> SAEnum:
    """Enum column persisted by member value ("under_review") rather than name."""
    return SAEnum(enum_cls, values_callable=lambda e: [m.value for m in e], name=name)
