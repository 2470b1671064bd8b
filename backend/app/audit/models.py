"""SQLAlchemy ORM models for the merge ledger and admin audit log."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class AuditBase(DeclarativeBase):
    """Base declarative class for audit tables."""


class AdminAuditLog(AuditBase):
    """Immutable record of an administrative action or rejected attempt."""

    __tablename__ = "admin_audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    admin_user_id: Mapped[str] = mapped_column(String(36), index=True)
    action_type: Mapped[str] = mapped_column(String(64), index=True)
    target_type: Mapped[str] = mapped_column(String(32))
    target_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    description: Mapped[str] = mapped_column(Text)
    details: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class UserAccountMerge(AuditBase):
    """Transfer ledger summarising one merge attempt."""

    __tablename__ = "user_account_merges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    account_type: Mapped[str] = mapped_column(String(16))
    primary_user_id: Mapped[str] = mapped_column(String(36), index=True)
    secondary_user_id: Mapped[str] = mapped_column(String(36), index=True)
    merged_by: Mapped[str] = mapped_column(String(36))
    primary_name: Mapped[str] = mapped_column(String(255), default="")
    secondary_name: Mapped[str] = mapped_column(String(255), default="")
    data_transferred: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    total_items_transferred: Mapped[int] = mapped_column(Integer, default=0)
    success: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


__all__ = ["AdminAuditLog", "AuditBase", "UserAccountMerge"]
