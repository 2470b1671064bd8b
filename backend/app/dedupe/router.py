"""FastAPI router exposing duplicate detection and merge endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.auth.router import get_current_admin, get_db_session, status_from_reason
from backend.app.auth.schemas import AdminContext
from backend.app.config import AppConfig
from backend.app.dedupe.errors import DedupeServiceError
from backend.app.dedupe.review import ReviewFilters, ReviewStatus
from backend.app.dedupe.schemas import (
    DetectedGroupList,
    DetectedGroupPayload,
    DuplicateGroupPayload,
    FindDuplicatesRequest,
    FindDuplicatesResponse,
    MergeRequest,
    MergeResponse,
    ReviewStatsResponse,
    ReviewStatusUpdate,
    ScanResponse,
)
from backend.app.dedupe.service import DedupeService

router = APIRouter(prefix="/api/admin", tags=["dedupe"])


def get_app_config(request: Request) -> AppConfig:
    """Return the configuration stored on the app state."""

    return request.app.state.app_config


async def get_dedupe_service(
    session: AsyncSession = Depends(get_db_session),
    config: AppConfig = Depends(get_app_config),
) -> DedupeService:
    """Construct a DedupeService for the current request."""

    return DedupeService(session, config)


@router.post(
    "/duplicates/find",
    response_model=FindDuplicatesResponse,
    summary="Find duplicate accounts for one entity",
)
async def find_duplicates(
    payload: FindDuplicatesRequest,
    admin: AdminContext = Depends(get_current_admin),
    service: DedupeService = Depends(get_dedupe_service),
) -> FindDuplicatesResponse:
    try:
        result = await service.find_duplicates(
            admin,
            account_type=payload.type,
            first_name=payload.first_name,
            birthday=payload.birthday,
            business_name=payload.business_name,
            business_phone=payload.business_phone,
        )
    except DedupeServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc
    return FindDuplicatesResponse(
        success=True,
        message=result.message,
        duplicates=[DuplicateGroupPayload.from_group(group) for group in result.duplicates],
    )


@router.post(
    "/accounts/merge",
    response_model=MergeResponse,
    summary="Merge a secondary account into a primary account",
    description="Returns 200 with success=false when some relations failed to transfer.",
)
async def merge_accounts(
    payload: MergeRequest,
    admin: AdminContext = Depends(get_current_admin),
    service: DedupeService = Depends(get_dedupe_service),
) -> MergeResponse:
    try:
        result = await service.merge_accounts(
            admin, payload.primary_user_id, payload.secondary_user_id
        )
    except DedupeServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc
    return MergeResponse.from_result(result)


@router.post("/duplicates/scan", response_model=ScanResponse, summary="Scan all accounts for duplicates")
async def scan_duplicates(
    admin: AdminContext = Depends(get_current_admin),
    service: DedupeService = Depends(get_dedupe_service),
) -> ScanResponse:
    try:
        summary = await service.scan(admin)
    except DedupeServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc
    return ScanResponse(**summary)


@router.get("/duplicates", response_model=DetectedGroupList, summary="List detected duplicate groups")
async def list_duplicate_groups(
    type: Optional[str] = Query(None, description="client or business"),
    confidence: Optional[str] = Query(None, description="high or medium"),
    status: Optional[str] = Query(
        ReviewStatus.PENDING.value, description="Review status; empty for all statuses"
    ),
    search: Optional[str] = Query(None, description="Matches member names and phones"),
    admin: AdminContext = Depends(get_current_admin),
    service: DedupeService = Depends(get_dedupe_service),
) -> DetectedGroupList:
    filters = ReviewFilters(
        type=type or None,
        confidence=confidence or None,
        status=status or None,
        search=search,
    )
    try:
        rows = await service.list_groups(admin, filters)
    except DedupeServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc
    groups = [DetectedGroupPayload.from_row(row) for row in rows]
    return DetectedGroupList(groups=groups, count=len(groups))


@router.get(
    "/duplicates/stats",
    response_model=ReviewStatsResponse,
    summary="Duplicate review statistics",
)
async def duplicate_stats(
    admin: AdminContext = Depends(get_current_admin),
    service: DedupeService = Depends(get_dedupe_service),
) -> ReviewStatsResponse:
    try:
        stats = await service.stats(admin)
    except DedupeServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc
    return ReviewStatsResponse.from_stats(stats)


@router.patch(
    "/duplicates/{group_id}",
    response_model=DetectedGroupPayload,
    summary="Record a review decision on a detected group",
)
async def update_duplicate_status(
    group_id: str,
    payload: ReviewStatusUpdate,
    admin: AdminContext = Depends(get_current_admin),
    service: DedupeService = Depends(get_dedupe_service),
) -> DetectedGroupPayload:
    try:
        row = await service.update_status(
            admin, group_id, ReviewStatus(payload.status), payload.admin_notes
        )
    except DedupeServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc
    return DetectedGroupPayload.from_row(row)


__all__ = ["get_app_config", "get_dedupe_service", "router"]
