from __future__ import annotations
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import String, Boolean, JSON, UniqueConstraint, DateTime, func
from typing import Optional, List, Dict, Any

Base = declarative_base()

# --- Core Models ---
class Role(Base):
    __tablename__ = 'roles'
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False, default='')
    description: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    # denormalized list of permission ids, informational only
    permissions: Mapped[List[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[Any] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Any] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Permission(Base):
    __tablename__ = 'permissions'
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    role_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (UniqueConstraint('role_id', 'resource', 'action', name='uq_role_resource_action'),)


class UserPermissionOverride(Base):
    __tablename__ = 'user_permission_overrides'
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # one bundle per user, enforced here and in the override service
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    permissions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[Any] = mapped_column(DateTime(timezone=True), server_default=func.now())
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class User(Base):
    __tablename__ = 'users'
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(64), nullable=False, default='agent')
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
