"""Pydantic request and response models for the admin duplicate endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Literal

from backend.app.dedupe.models import DuplicateGroup, EnrichedAccount, MergeResult
from backend.app.dedupe.review import DetectedDuplicateGroup, ReviewStats


class _FrozenModel(BaseModel):
    """Base immutable schema."""

    model_config = ConfigDict(frozen=True)


class FindDuplicatesRequest(BaseModel):
    """Search criteria for a targeted duplicate lookup."""

    type: Optional[str] = Field(default=None, description='"client" or "business"')
    first_name: Optional[str] = None
    birthday: Optional[str] = Field(default=None, description="ISO date, YYYY-MM-DD")
    business_name: Optional[str] = None
    business_phone: Optional[str] = None


class MergeRequest(BaseModel):
    """Caller-confirmed pair of accounts to merge."""

    primary_user_id: Optional[str] = None
    secondary_user_id: Optional[str] = None


class DuplicateAccountPayload(_FrozenModel):
    """Candidate account shown for confirmation before a merge."""

    user_id: str
    owner_user_id: str
    type: str
    display_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    business_name: Optional[str] = None
    business_type: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    birthday: Optional[date] = None
    country_code: Optional[str] = None
    is_verified: bool = False
    auth_methods: List[str] = Field(default_factory=list)
    data_count: Dict[str, int] = Field(default_factory=dict)
    created_at: datetime
    last_active: Optional[datetime] = None
    degraded_signals: List[str] = Field(default_factory=list)

    @classmethod
    def from_enriched(cls, item: EnrichedAccount) -> "DuplicateAccountPayload":
        account = item.account
        return cls(
            user_id=account.account_id,
            owner_user_id=account.user_id,
            type=account.kind.value,
            display_name=account.display_name,
            first_name=account.first_name,
            last_name=account.last_name,
            business_name=account.business_name,
            business_type=account.business_type,
            phone=account.phone,
            email=account.email,
            city=account.city,
            birthday=account.birthday,
            country_code=account.country_code,
            is_verified=account.is_verified,
            auth_methods=list(item.auth_methods),
            data_count=item.data_count.as_dict(),
            created_at=account.created_at,
            last_active=item.last_active,
            degraded_signals=list(item.degraded_signals),
        )


class DuplicateGroupPayload(_FrozenModel):
    type: str
    confidence: str
    match_criteria: List[str]
    accounts: List[DuplicateAccountPayload]
    recommended_primary: str

    @classmethod
    def from_group(cls, group: DuplicateGroup) -> "DuplicateGroupPayload":
        return cls(
            type=group.kind.value,
            confidence=group.confidence.value,
            match_criteria=list(group.match_criteria),
            accounts=[DuplicateAccountPayload.from_enriched(item) for item in group.accounts],
            recommended_primary=group.recommended_primary,
        )


class FindDuplicatesResponse(_FrozenModel):
    success: bool = True
    message: str
    duplicates: List[DuplicateGroupPayload] = Field(default_factory=list)


class TransferLogPayload(_FrozenModel):
    table: str
    count: int
    success: bool
    error: Optional[str] = None


class MergeResponse(_FrozenModel):
    """Outcome of a merge; returned with HTTP 200 even on partial failure."""

    success: bool
    message: str
    primary_user: str
    secondary_user: str
    total_items_transferred: int
    secondary_suspended: bool
    transfer_details: List[TransferLogPayload]

    @classmethod
    def from_result(cls, result: MergeResult) -> "MergeResponse":
        return cls(
            success=result.success,
            message=result.message,
            primary_user=result.primary.account_id,
            secondary_user=result.secondary.account_id,
            total_items_transferred=result.total_items_transferred,
            secondary_suspended=result.secondary_suspended,
            transfer_details=[
                TransferLogPayload(
                    table=entry.table,
                    count=entry.count,
                    success=entry.success,
                    error=entry.error,
                )
                for entry in result.transfer_details
            ],
        )


class ScanResponse(_FrozenModel):
    success: bool = True
    total_detected: int
    new_inserted: int
    client_groups: int
    business_groups: int


class DetectedGroupPayload(_FrozenModel):
    """Stored duplicate group as listed on the review dashboard."""

    id: str
    type: str
    match_criteria: List[str]
    confidence: str
    account_ids: List[str]
    primary_user_id: Optional[str] = None
    status: str
    metadata: Dict[str, object] = Field(default_factory=dict)
    detected_at: datetime
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    admin_notes: Optional[str] = None

    @classmethod
    def from_row(cls, row: DetectedDuplicateGroup) -> "DetectedGroupPayload":
        return cls(
            id=row.id,
            type=row.type,
            match_criteria=list(row.match_criteria or []),
            confidence=row.confidence,
            account_ids=list(row.account_ids or []),
            primary_user_id=row.primary_user_id,
            status=row.status,
            metadata=dict(row.details or {}),
            detected_at=row.detected_at,
            reviewed_by=row.reviewed_by,
            reviewed_at=row.reviewed_at,
            admin_notes=row.admin_notes,
        )


class DetectedGroupList(_FrozenModel):
    groups: List[DetectedGroupPayload]
    count: int


class ReviewStatsResponse(_FrozenModel):
    total: int
    pending: int
    merged: int
    dismissed: int
    client_pending: int
    business_pending: int
    high_confidence: int

    @classmethod
    def from_stats(cls, stats: ReviewStats) -> "ReviewStatsResponse":
        return cls(
            total=stats.total,
            pending=stats.pending,
            merged=stats.merged,
            dismissed=stats.dismissed,
            client_pending=stats.client_pending,
            business_pending=stats.business_pending,
            high_confidence=stats.high_confidence,
        )


class ReviewStatusUpdate(BaseModel):
    """Administrator decision on a detected group."""

    status: Literal["reviewed", "merged", "dismissed"]
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


__all__ = [
    "DetectedGroupList",
    "DetectedGroupPayload",
    "DuplicateAccountPayload",
    "DuplicateGroupPayload",
    "FindDuplicatesRequest",
    "FindDuplicatesResponse",
    "MergeRequest",
    "MergeResponse",
    "ReviewStatsResponse",
    "ReviewStatusUpdate",
    "ScanResponse",
    "TransferLogPayload",
]
