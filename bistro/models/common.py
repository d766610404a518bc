import uuid
from sqlalchemy import String, DateTime, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def money_column(**kw):
    # floats in, floats out; pricing arithmetic never sees Decimal
    return mapped_column(Numeric(10, 2, asdecimal=False), **kw)

class IdMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

class TSMMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    version: Mapped[int] = mapped_column(Integer, default=1)
