from __future__ import annotations
from typing import Optional, Any
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, JSON, DateTime, UniqueConstraint, func
from sleepdesk.models.authz import Base

class Webhook(Base):
    __tablename__ = 'webhooks'
    # Status constants
    STATUS_PENDING = 'pending'
    STATUS_PROCESSED = 'processed'
    STATUS_FAILED = 'failed'
    STATUS_RETRYING = 'retrying'
    ALL_STATUSES = (STATUS_PENDING, STATUS_PROCESSED, STATUS_FAILED, STATUS_RETRYING)
    SOURCES = ('shopify', 'internal', 'other')
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    source: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    event: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    received_at: Mapped[Any] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    processed_at: Mapped[Optional[Any]] = mapped_column(DateTime(timezone=True), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    headers: Mapped[dict] = mapped_column(JSON, default=dict)
    payload: Mapped[Any] = mapped_column(JSON, nullable=True)
    response: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

# Status flow: pending -> processed | failed; failed -> retrying -> processed | failed.
# failed with attempts >= max attempts is terminal.


class WebhookEvent(Base):
    __tablename__ = 'webhook_events'
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    event: Mapped[str] = mapped_column(String(128), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    description: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    retry_policy: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[Any] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Any] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('source', 'event', name='uq_webhook_event_source_event'),)
