"""SQLAlchemy ORM models for authentication tables."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, String, Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from backend.app.auth.enums import AdminRole


class AuthBase(DeclarativeBase):
    """Base declarative class for authentication models."""


class AdminUser(AuthBase):
    """Administrator allowed to operate on duplicate accounts."""

    __tablename__ = "admin_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    role: Mapped[AdminRole] = mapped_column(
        SAEnum(AdminRole, name="admin_role", native_enum=False, length=16),
        default=AdminRole.MODERATOR,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    assigned_countries: Mapped[Optional[List[str]]] = mapped_column(JSON, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["AuthBase", "AdminUser", "AdminRole"]
