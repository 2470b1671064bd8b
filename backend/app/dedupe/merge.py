"""Best-effort reassignment of account ownership from a secondary to a primary."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from backend.app.accounts.repository import MERGE_STATE_MERGED, AccountRepository
from backend.app.auth.schemas import AdminContext
from backend.app.config import MergeConfig
from backend.app.dedupe.errors import (
    InvalidRequestError,
    MergeConflictError,
    NotFoundError,
)
from backend.app.dedupe.models import AccountKind, AccountSnapshot, MergeResult, TransferLedgerEntry
from backend.app.dedupe.relations import DEFAULT_RELATIONS, RelationSpec

LOGGER = logging.getLogger(__name__)


def _error_detail(exc: Exception) -> str:
    original = getattr(exc, "orig", None)
    return str(original or exc).splitlines()[0]


class MergeExecutor:
    """Move owned records between two accounts of the same kind.

    Every relation is committed on its own. A failing relation is rolled
    back alone, recorded in the ledger and the remaining relations still
    run; nothing already moved is undone. The secondary account is then
    suspended and annotated, never deleted.
    """

    def __init__(
        self,
        repository: AccountRepository,
        config: MergeConfig | None = None,
        relations: Optional[Mapping[AccountKind, Sequence[RelationSpec]]] = None,
    ) -> None:
        self._repository = repository
        self._config = config or MergeConfig()
        self._relations: Dict[AccountKind, Tuple[RelationSpec, ...]] = {
            kind: tuple(specs) for kind, specs in (relations or DEFAULT_RELATIONS).items()
        }

    @staticmethod
    def validate_request(primary_id: Optional[str], secondary_id: Optional[str]) -> Tuple[str, str]:
        """Reject missing identifiers and self-merges before any lookup."""

        primary = (primary_id or "").strip()
        secondary = (secondary_id or "").strip()
        if not primary or not secondary:
            raise InvalidRequestError("primary_user_id and secondary_user_id are required")
        if primary == secondary:
            raise InvalidRequestError("Cannot merge an account with itself")
        return primary, secondary

    async def resolve(self, primary_id: str, secondary_id: str) -> Tuple[AccountSnapshot, AccountSnapshot]:
        """Load both accounts and check they are of the same kind."""

        primary = await self._repository.resolve(primary_id)
        secondary = await self._repository.resolve(secondary_id)
        if primary is None or secondary is None:
            raise NotFoundError("One or both account profiles not found")
        if primary.kind is not secondary.kind:
            raise InvalidRequestError("Cannot merge a client account with a business account")
        return primary, secondary

    def relations_for(self, kind: AccountKind) -> Tuple[RelationSpec, ...]:
        return self._relations.get(kind, ())

    async def execute(
        self, admin: AdminContext, primary: AccountSnapshot, secondary: AccountSnapshot
    ) -> MergeResult:
        """Run every relation transfer and soft-disable the secondary."""

        claimed = False
        if self._config.claim_secondary:
            await self._claim(secondary)
            claimed = True

        merged_at = datetime.now(timezone.utc)
        ledger: List[TransferLedgerEntry] = []
        finished = False
        try:
            for relation in self.relations_for(primary.kind):
                ledger.append(await self._transfer(relation, primary, secondary))
            suspended = await self._soft_disable(admin, primary, secondary, merged_at)
            finished = True
        finally:
            if claimed and not finished:
                LOGGER.warning(
                    "Merge interrupted, releasing claim",
                    extra={"secondary_id": secondary.account_id, "relations_done": len(ledger)},
                )
                await self._release_claim(secondary)
        result = MergeResult(
            kind=primary.kind,
            primary=primary,
            secondary=secondary,
            transfer_details=ledger,
            secondary_suspended=suspended,
            merged_by=admin.user_id,
            merged_at=merged_at,
        )
        LOGGER.info(
            "Merged %s into %s: %d item(s) moved, success=%s",
            secondary.account_id,
            primary.account_id,
            result.total_items_transferred,
            result.success,
        )
        return result

    async def _claim(self, secondary: AccountSnapshot) -> None:
        claimed = await self._repository.claim_for_merge(secondary)
        await self._repository.commit()
        if not claimed:
            raise MergeConflictError(
                f"Account {secondary.account_id} is already being merged by another request"
            )

    async def _transfer(
        self, relation: RelationSpec, primary: AccountSnapshot, secondary: AccountSnapshot
    ) -> TransferLedgerEntry:
        try:
            count = await self._repository.reassign_owner(
                relation.owner_column, secondary.account_id, primary.account_id
            )
            await self._repository.commit()
        except SQLAlchemyError as exc:
            await self._repository.rollback()
            LOGGER.warning(
                "Relation transfer failed",
                exc_info=True,
                extra={"relation": relation.name, "secondary_id": secondary.account_id},
            )
            return TransferLedgerEntry(table=relation.name, count=0, success=False, error=_error_detail(exc))
        return TransferLedgerEntry(table=relation.name, count=count, success=True)

    async def _soft_disable(
        self,
        admin: AdminContext,
        primary: AccountSnapshot,
        secondary: AccountSnapshot,
        merged_at: datetime,
    ) -> bool:
        note = (
            f"{self._config.merged_note_prefix} Account merged into {primary.account_id} "
            f"on {merged_at.isoformat()} by {admin.user_id}"
        )
        try:
            await self._repository.soft_disable(secondary, note)
            await self._repository.release_merge_claim(secondary, MERGE_STATE_MERGED)
            await self._repository.commit()
            return True
        except (SQLAlchemyError, LookupError):
            await self._repository.rollback()
            LOGGER.exception(
                "Failed to suspend merged account", extra={"secondary_id": secondary.account_id}
            )
        if self._config.claim_secondary:
            await self._release_claim(secondary)
        return False

    async def _release_claim(self, secondary: AccountSnapshot) -> None:
        try:
            await self._repository.rollback()
            await self._repository.release_merge_claim(secondary, None)
            await self._repository.commit()
        except SQLAlchemyError:
            await self._repository.rollback()
            LOGGER.exception(
                "Failed to release merge claim", extra={"secondary_id": secondary.account_id}
            )


__all__ = ["MergeExecutor"]
