from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, JSON, DateTime
from typing import Optional, Any

from .authz import Base  # reuse same metadata

class ActivityLog(Base):
    __tablename__ = 'activity_logs'
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_email: Mapped[str] = mapped_column(String(128), nullable=False, default='')
    user_name: Mapped[str] = mapped_column(String(128), nullable=False, default='')
    action: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    # named `metadata` in the serialized record; SQLAlchemy reserves the attribute name
    meta: Mapped[dict] = mapped_column('metadata', JSON, default=dict)
    timestamp: Mapped[Any] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
