from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, JSON, DateTime, UniqueConstraint, func
from sleepdesk.models.authz import Base

class Record(Base):
    """JSON document belonging to an untyped collection (customers, stores, sales, ...)."""
    __tablename__ = 'records'
    pk: Mapped[int] = mapped_column(Integer, primary_key=True)
    collection: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    record_id: Mapped[str] = mapped_column(String(128), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, default=dict)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('collection', 'record_id', name='uq_record_collection_id'),)
