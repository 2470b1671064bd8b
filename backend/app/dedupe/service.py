"""Service layer coordinating duplicate detection, merging and review."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.accounts.repository import AccountRepository
from backend.app.audit.writer import AuditWriter
from backend.app.auth.enums import AdminRole
from backend.app.auth.schemas import AdminContext
from backend.app.config import AppConfig
from backend.app.dedupe.authorization import AuthorizationGate
from backend.app.dedupe.enrichment import (
    BUSINESS_SIGNALS,
    CLIENT_SIGNALS,
    EnrichmentCollector,
    SignalQuery,
)
from backend.app.dedupe.errors import InternalEngineError, NotFoundError
from backend.app.dedupe.finder import DuplicateFinder, DuplicateSearch
from backend.app.dedupe.merge import MergeExecutor
from backend.app.dedupe.models import (
    AccountKind,
    DuplicateGroup,
    FindResult,
    MatchConfidence,
    MergeResult,
)
from backend.app.dedupe.ranking import PrimarySelector
from backend.app.dedupe.relations import RelationSpec
from backend.app.dedupe.review import (
    DetectedDuplicateGroup,
    DetectedGroupRepository,
    ReviewFilters,
    ReviewStats,
    ReviewStatus,
)
from backend.app.dedupe.scan import DuplicateScanner

LOGGER = logging.getLogger(__name__)

_DETECT_PRIVILEGE = "Super admin privileges required"
_LEDGER_ATTEMPTS = 2


class DedupeService:
    """Coordinate the finder, ranking, authorization and merge stages.

    Every public operation receives the caller's ``AdminContext`` explicitly.
    Service errors carry a ``reason`` the router maps to an HTTP status;
    unexpected database faults are rolled back and surfaced as
    ``InternalEngineError``.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: AppConfig,
        *,
        relations: Optional[Mapping[AccountKind, Sequence[RelationSpec]]] = None,
        client_signals: Sequence[SignalQuery] = CLIENT_SIGNALS,
        business_signals: Sequence[SignalQuery] = BUSINESS_SIGNALS,
    ) -> None:
        self._session = session
        self._config = config
        self._accounts = AccountRepository(session)
        self._audit = AuditWriter(session)
        self._review = DetectedGroupRepository(session)
        self._finder = DuplicateFinder(self._accounts)
        self._enrichment = EnrichmentCollector(
            self._accounts,
            client_signals=client_signals,
            business_signals=business_signals,
        )
        self._selector = PrimarySelector(config.ranking)
        self._gate = AuthorizationGate(self._audit, AdminRole(config.auth.merge_role))
        self._executor = MergeExecutor(self._accounts, config.merge, relations)
        self._scanner = DuplicateScanner(
            self._accounts, self._enrichment, self._selector, config.dedupe
        )

    @asynccontextmanager
    async def _store_faults(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            await self._session.rollback()
            LOGGER.exception("Unexpected database failure", extra={"operation": operation})
            raise InternalEngineError("Internal server error") from exc

    async def find_duplicates(
        self,
        admin: AdminContext,
        *,
        account_type: Optional[str],
        first_name: Optional[str] = None,
        birthday: Union[date, str, None] = None,
        business_name: Optional[str] = None,
        business_phone: Optional[str] = None,
    ) -> FindResult:
        """Search for duplicates of one entity and recommend a primary."""

        self._gate.require_privilege(admin, _DETECT_PRIVILEGE)
        search = DuplicateSearch.build(
            account_type,
            first_name=first_name,
            birthday=birthday,
            business_name=business_name,
            business_phone=business_phone,
        )
        async with self._store_faults("find_duplicates"):
            candidates = await self._finder.find(search)
            if not candidates:
                return FindResult("No matching account found", [], 0)
            if len(candidates) == 1:
                return FindResult("Only one matching account found, no duplicates", [], 1)

            enriched = await self._enrichment.enrich(candidates)
            ranked, primary_id = self._selector.select(enriched)
            confidence = search.confidence(
                MatchConfidence(self._config.dedupe.business_name_only_confidence)
            )
            group = DuplicateGroup(
                kind=search.kind,
                confidence=confidence,
                match_criteria=search.match_criteria,
                accounts=ranked,
                recommended_primary=primary_id,
            )
        return FindResult(f"{len(candidates)} duplicate accounts found", [group], len(candidates))

    async def merge_accounts(
        self,
        admin: AdminContext,
        primary_id: Optional[str],
        secondary_id: Optional[str],
    ) -> MergeResult:
        """Merge the secondary account into the primary and write the ledger."""

        self._gate.require_privilege(admin)
        primary_key, secondary_key = MergeExecutor.validate_request(primary_id, secondary_id)
        async with self._store_faults("merge_accounts"):
            primary, secondary = await self._executor.resolve(primary_key, secondary_key)
            await self._gate.authorize_merge(admin, primary, secondary)
            LOGGER.info(
                "Starting %s merge of %s into %s",
                primary.kind.value,
                secondary.account_id,
                primary.account_id,
                extra={"admin_user_id": admin.user_id},
            )
            result = await self._executor.execute(admin, primary, secondary)
        await self._record_merge(result)
        return result

    async def _record_merge(self, result: MergeResult) -> None:
        """Write the ledger for a merge whose transfers are already committed.

        The write is retried once. If it still fails the ledger is logged in
        full before the error is raised.
        """

        for attempt in range(1, _LEDGER_ATTEMPTS + 1):
            try:
                await self._audit.record_merge(result)
                return
            except SQLAlchemyError:
                await self._session.rollback()
                LOGGER.warning(
                    "Merge ledger write failed",
                    exc_info=True,
                    extra={"attempt": attempt, "secondary_id": result.secondary.account_id},
                )
        LOGGER.error(
            "Merge of %s into %s is not recorded in the ledger",
            result.secondary.account_id,
            result.primary.account_id,
            extra={
                "admin_user_id": result.merged_by,
                "success": result.success,
                "secondary_suspended": result.secondary_suspended,
                "total_items_transferred": result.total_items_transferred,
                "transfer_logs": [entry.as_dict() for entry in result.transfer_details],
            },
        )
        raise InternalEngineError("Accounts merged but the merge ledger could not be recorded")

    async def scan(self, admin: AdminContext) -> Dict[str, Any]:
        """Run a full duplicate scan and store groups not already under review."""

        self._gate.require_privilege(admin, _DETECT_PRIVILEGE)
        async with self._store_faults("scan_duplicates"):
            groups = await self._scanner.scan()
            open_sets = await self._review.open_account_sets()
            inserted = 0
            for group in groups:
                key = frozenset(group.account_ids)
                if key in open_sets:
                    continue
                self._review.add(group)
                open_sets.add(key)
                inserted += 1
            await self._review.commit()
            summary: Dict[str, Any] = {
                "success": True,
                "total_detected": len(groups),
                "new_inserted": inserted,
                "client_groups": sum(1 for group in groups if group.kind is AccountKind.CLIENT),
                "business_groups": sum(1 for group in groups if group.kind is AccountKind.BUSINESS),
            }
            await self._audit.record_scan(admin, summary)
        LOGGER.info(
            "Duplicate scan stored %d new group(s) of %d detected",
            inserted,
            len(groups),
            extra={"admin_user_id": admin.user_id},
        )
        return summary

    async def list_groups(
        self, admin: AdminContext, filters: ReviewFilters
    ) -> List[DetectedDuplicateGroup]:
        self._gate.require_privilege(admin, _DETECT_PRIVILEGE)
        async with self._store_faults("list_duplicate_groups"):
            return await self._review.list_groups(filters)

    async def stats(self, admin: AdminContext) -> ReviewStats:
        self._gate.require_privilege(admin, _DETECT_PRIVILEGE)
        async with self._store_faults("duplicate_stats"):
            return await self._review.stats()

    async def update_status(
        self,
        admin: AdminContext,
        group_id: str,
        status: ReviewStatus,
        notes: Optional[str] = None,
    ) -> DetectedDuplicateGroup:
        """Record an administrator decision on a detected group."""

        self._gate.require_privilege(admin, _DETECT_PRIVILEGE)
        async with self._store_faults("update_duplicate_status"):
            row = await self._review.get(group_id)
            if row is None:
                raise NotFoundError("Duplicate group not found")
            await self._review.update_status(row, status, reviewed_by=admin.user_id, notes=notes)
            await self._review.commit()
        return row


__all__ = ["DedupeService"]
