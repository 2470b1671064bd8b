"""Per-candidate signal collection used for ranking and display."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import InstrumentedAttribute

from backend.app.accounts.models import (
    BusinessOrder,
    CollectiveFund,
    Contact,
    FundContribution,
    Post,
    Product,
)
from backend.app.accounts.repository import AccountRepository
from backend.app.dedupe.models import AccountKind, AccountSnapshot, DataSignature, EnrichedAccount

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SignalQuery:
    """One count query contributing a field of the data signature."""

    field: str
    column: InstrumentedAttribute[Any]


CLIENT_SIGNALS: Tuple[SignalQuery, ...] = (
    SignalQuery("contacts", Contact.user_id),
    SignalQuery("funds", CollectiveFund.creator_id),
    SignalQuery("contributions", FundContribution.contributor_id),
    SignalQuery("posts", Post.user_id),
    SignalQuery("orders", BusinessOrder.customer_id),
)

BUSINESS_SIGNALS: Tuple[SignalQuery, ...] = (
    SignalQuery("products", Product.business_id),
    SignalQuery("orders", BusinessOrder.business_account_id),
    SignalQuery("funds", CollectiveFund.created_by_business_id),
)


class EnrichmentCollector:
    """Gather auth methods, data signatures and activity for candidates.

    Every signal is read independently. A failing query degrades only its own
    field to zero or ``None``; the failure is logged and listed in
    ``EnrichedAccount.degraded_signals``.
    """

    def __init__(
        self,
        repository: AccountRepository,
        *,
        client_signals: Sequence[SignalQuery] = CLIENT_SIGNALS,
        business_signals: Sequence[SignalQuery] = BUSINESS_SIGNALS,
    ) -> None:
        self._repository = repository
        self._signals = {
            AccountKind.CLIENT: tuple(client_signals),
            AccountKind.BUSINESS: tuple(business_signals),
        }

    async def enrich(self, accounts: Sequence[AccountSnapshot]) -> List[EnrichedAccount]:
        """Return enriched copies of ``accounts`` in the same order."""

        return [await self.enrich_one(account) for account in accounts]

    async def enrich_one(self, account: AccountSnapshot) -> EnrichedAccount:
        degraded: List[str] = []

        auth_methods = await self._guarded(
            account, "auth_methods", lambda: self._auth_methods(account.user_id), [], degraded
        )

        counts: Dict[str, int] = {}
        for signal in self._signals[account.kind]:
            counts[signal.field] = await self._guarded(
                account,
                signal.field,
                lambda column=signal.column: self._repository.count_owned(column, account.account_id),
                0,
                degraded,
            )

        last_active: Optional[datetime] = None
        if account.kind is AccountKind.CLIENT:
            last_active = await self._guarded(
                account,
                "last_active",
                lambda: self._repository.latest_post_at(account.user_id),
                None,
                degraded,
            )

        return EnrichedAccount(
            account=account,
            auth_methods=auth_methods,
            data_count=DataSignature(**counts),
            last_active=last_active,
            degraded_signals=degraded,
        )

    async def _auth_methods(self, user_id: str) -> List[str]:
        identity = await self._repository.get_identity(user_id)
        methods: List[str] = []
        if identity is None:
            return methods
        if identity.phone:
            methods.append("phone")
        if identity.email:
            provider = (identity.provider or "email").strip().lower()
            methods.append(provider if provider not in {"", "phone"} else "email")
        return methods

    async def _guarded(
        self,
        account: AccountSnapshot,
        signal: str,
        query: Callable[[], Awaitable[T]],
        fallback: T,
        degraded: List[str],
    ) -> T:
        try:
            return await query()
        except SQLAlchemyError:
            LOGGER.warning(
                "Signal query failed; using fallback value",
                exc_info=True,
                extra={"account_id": account.account_id, "signal": signal},
            )
            degraded.append(signal)
            await self._repository.rollback()
            return fallback


__all__ = ["BUSINESS_SIGNALS", "CLIENT_SIGNALS", "EnrichmentCollector", "SignalQuery"]
