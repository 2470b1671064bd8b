"""Persistence for duplicate groups awaiting administrator review."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Set
from uuid import uuid4

from sqlalchemy import JSON, DateTime, String, Text, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from backend.app.dedupe.models import DuplicateGroup


class ReviewBase(DeclarativeBase):
    """Base declarative class for review tables."""


class ReviewStatus(str, Enum):
    """Lifecycle of a detected duplicate group."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    MERGED = "merged"
    DISMISSED = "dismissed"


OPEN_STATUSES = (ReviewStatus.PENDING.value, ReviewStatus.REVIEWED.value)


class DetectedDuplicateGroup(ReviewBase):
    """Duplicate group found by a full scan."""

    __tablename__ = "detected_duplicate_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    type: Mapped[str] = mapped_column(String(16), index=True)
    match_criteria: Mapped[List[str]] = mapped_column(JSON, default=list)
    confidence: Mapped[str] = mapped_column(String(16), index=True)
    account_ids: Mapped[List[str]] = mapped_column(JSON, default=list)
    primary_user_id: Mapped[Optional[str]] = mapped_column(String(36))
    status: Mapped[str] = mapped_column(String(16), default=ReviewStatus.PENDING.value, index=True)
    details: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(36))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)


@dataclass(frozen=True)
class ReviewFilters:
    """Filters applied when listing detected groups."""

    type: Optional[str] = None
    confidence: Optional[str] = None
    status: Optional[str] = ReviewStatus.PENDING.value
    search: Optional[str] = None


@dataclass(frozen=True)
class ReviewStats:
    """Counts shown on the duplicate review dashboard."""

    total: int
    pending: int
    merged: int
    dismissed: int
    client_pending: int
    business_pending: int
    high_confidence: int


def group_metadata(group: DuplicateGroup) -> Dict[str, Any]:
    """Serialise group members for display on the review dashboard."""

    return {
        "accounts": [
            {
                "user_id": item.account_id,
                "name": item.account.display_name or "Unnamed",
                "phone": item.account.phone,
                "created_at": item.created_at.isoformat(),
                "data_counts": item.data_count.as_dict(),
            }
            for item in group.accounts
        ]
    }


def _matches_search(row: DetectedDuplicateGroup, needle: str) -> bool:
    for account in (row.details or {}).get("accounts", []):
        name = str(account.get("name") or "").lower()
        phone = str(account.get("phone") or "")
        if needle in name or needle in phone:
            return True
    return False


class DetectedGroupRepository:
    """Store and review duplicate groups produced by scans."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def open_account_sets(self) -> Set[FrozenSet[str]]:
        """Return the account-id sets of groups still pending or under review."""

        result = await self._session.execute(
            select(DetectedDuplicateGroup.account_ids).where(
                DetectedDuplicateGroup.status.in_(OPEN_STATUSES)
            )
        )
        return {frozenset(ids or []) for ids in result.scalars().all()}

    def add(self, group: DuplicateGroup) -> DetectedDuplicateGroup:
        row = DetectedDuplicateGroup(
            type=group.kind.value,
            match_criteria=list(group.match_criteria),
            confidence=group.confidence.value,
            account_ids=group.account_ids,
            primary_user_id=group.recommended_primary,
            status=ReviewStatus.PENDING.value,
            details=group_metadata(group),
        )
        self._session.add(row)
        return row

    async def list_groups(self, filters: ReviewFilters) -> List[DetectedDuplicateGroup]:
        """Return detected groups, newest first, matching ``filters``."""

        statement = select(DetectedDuplicateGroup).order_by(DetectedDuplicateGroup.detected_at.desc())
        if filters.type:
            statement = statement.where(DetectedDuplicateGroup.type == filters.type)
        if filters.confidence:
            statement = statement.where(DetectedDuplicateGroup.confidence == filters.confidence)
        if filters.status:
            statement = statement.where(DetectedDuplicateGroup.status == filters.status)
        result = await self._session.execute(statement)
        rows = list(result.scalars().all())
        needle = (filters.search or "").strip().lower()
        if needle:
            rows = [row for row in rows if _matches_search(row, needle)]
        return rows

    async def stats(self) -> ReviewStats:
        result = await self._session.execute(
            select(
                DetectedDuplicateGroup.type,
                DetectedDuplicateGroup.status,
                DetectedDuplicateGroup.confidence,
            )
        )
        rows = result.all()
        pending = [row for row in rows if row.status == ReviewStatus.PENDING.value]
        return ReviewStats(
            total=len(rows),
            pending=len(pending),
            merged=sum(1 for row in rows if row.status == ReviewStatus.MERGED.value),
            dismissed=sum(1 for row in rows if row.status == ReviewStatus.DISMISSED.value),
            client_pending=sum(1 for row in pending if row.type == "client"),
            business_pending=sum(1 for row in pending if row.type == "business"),
            high_confidence=sum(1 for row in pending if row.confidence == "high"),
        )

    async def get(self, group_id: str) -> Optional[DetectedDuplicateGroup]:
        return await self._session.get(DetectedDuplicateGroup, group_id)

    async def update_status(
        self,
        row: DetectedDuplicateGroup,
        status: ReviewStatus,
        *,
        reviewed_by: str,
        notes: Optional[str] = None,
    ) -> DetectedDuplicateGroup:
        row.status = status.value
        row.reviewed_by = reviewed_by
        row.reviewed_at = datetime.now(timezone.utc)
        row.admin_notes = notes or None
        await self._session.flush()
        return row

    async def commit(self) -> None:
        await self._session.commit()


__all__ = [
    "DetectedDuplicateGroup",
    "DetectedGroupRepository",
    "OPEN_STATUSES",
    "ReviewBase",
    "ReviewFilters",
    "ReviewStats",
    "ReviewStatus",
    "group_metadata",
]
