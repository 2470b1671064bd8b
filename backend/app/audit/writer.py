"""Writer persisting merge ledgers and audit entries."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.audit.models import AdminAuditLog, UserAccountMerge
from backend.app.auth.schemas import AdminContext
from backend.app.dedupe.models import AccountKind, AccountSnapshot, MergeResult

LOGGER = logging.getLogger(__name__)

ACTION_MERGE = "merge_accounts"
ACTION_UNAUTHORIZED_COUNTRY = "unauthorized_country_access"
ACTION_SCAN = "scan_duplicates"


def _target_type(kind: AccountKind) -> str:
    return "business" if kind is AccountKind.BUSINESS else "user"


class AuditWriter:
    """Append ledger and audit rows; rows are never updated or deleted."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record_merge(self, result: MergeResult) -> UserAccountMerge:
        """Persist the transfer ledger and its ``merge_accounts`` audit entry."""

        ledger = [entry.as_dict() for entry in result.transfer_details]
        primary_name = result.primary.display_name
        secondary_name = result.secondary.display_name
        ledger_row = UserAccountMerge(
            account_type=result.kind.value,
            primary_user_id=result.primary.account_id,
            secondary_user_id=result.secondary.account_id,
            merged_by=result.merged_by,
            primary_name=primary_name,
            secondary_name=secondary_name,
            data_transferred=ledger,
            total_items_transferred=result.total_items_transferred,
            success=result.success,
        )
        self._session.add(ledger_row)
        self._session.add(
            AdminAuditLog(
                admin_user_id=result.merged_by,
                action_type=ACTION_MERGE,
                target_type=_target_type(result.kind),
                target_id=result.primary.account_id,
                description=(
                    f"Merged account {result.secondary.account_id} "
                    f"into {result.primary.account_id}"
                ),
                details={
                    "secondary_user_id": result.secondary.account_id,
                    "primary_name": primary_name,
                    "secondary_name": secondary_name,
                    "success": result.success,
                    "secondary_suspended": result.secondary_suspended,
                    "total_items_transferred": result.total_items_transferred,
                    "transfer_logs": ledger,
                },
            )
        )
        await self._session.commit()
        LOGGER.info(
            "Merge ledger recorded",
            extra={
                "primary_id": result.primary.account_id,
                "secondary_id": result.secondary.account_id,
                "success": result.success,
            },
        )
        return ledger_row

    async def record_unauthorized_country_access(
        self,
        *,
        admin: AdminContext,
        blocked: AccountSnapshot,
        primary: AccountSnapshot,
        secondary: AccountSnapshot,
    ) -> AdminAuditLog:
        """Persist the audit entry for a merge rejected by country scope."""

        entry = AdminAuditLog(
            admin_user_id=admin.user_id,
            action_type=ACTION_UNAUTHORIZED_COUNTRY,
            target_type=_target_type(blocked.kind),
            target_id=blocked.account_id,
            description=(
                "Attempted account merge involving account from restricted country: "
                f"{blocked.country_code}"
            ),
            details={
                "attempted_action": ACTION_MERGE,
                "primary_user_id": primary.account_id,
                "secondary_user_id": secondary.account_id,
                "primary_country": primary.country_code,
                "secondary_country": secondary.country_code,
                "admin_assigned_countries": list(admin.assigned_countries),
                "blocked": True,
            },
        )
        self._session.add(entry)
        await self._session.commit()
        return entry

    async def record_scan(self, admin: AdminContext, summary: Dict[str, Any]) -> AdminAuditLog:
        """Persist the audit entry summarising a full duplicate scan."""

        entry = AdminAuditLog(
            admin_user_id=admin.user_id,
            action_type=ACTION_SCAN,
            target_type="system",
            target_id=None,
            description=(
                f"Duplicate scan: {summary.get('total_detected', 0)} group(s) detected, "
                f"{summary.get('new_inserted', 0)} new"
            ),
            details=dict(summary),
        )
        self._session.add(entry)
        await self._session.commit()
        return entry

    async def list_entries(
        self, *, action_type: Optional[str] = None, target_id: Optional[str] = None
    ) -> List[AdminAuditLog]:
        """Return audit entries, oldest first, optionally filtered."""

        statement = select(AdminAuditLog).order_by(AdminAuditLog.created_at)
        if action_type is not None:
            statement = statement.where(AdminAuditLog.action_type == action_type)
        if target_id is not None:
            statement = statement.where(AdminAuditLog.target_id == target_id)
        result = await self._session.execute(statement)
        return list(result.scalars().all())


__all__ = [
    "ACTION_MERGE",
    "ACTION_SCAN",
    "ACTION_UNAUTHORIZED_COUNTRY",
    "AuditWriter",
]
