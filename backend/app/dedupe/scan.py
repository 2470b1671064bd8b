"""Full scan grouping every active account by normalized match keys."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Sequence, Set

from backend.app.accounts.repository import AccountRepository
from backend.app.config import DedupeConfig
from backend.app.dedupe.enrichment import EnrichmentCollector
from backend.app.dedupe.models import AccountKind, AccountSnapshot, DuplicateGroup, MatchConfidence
from backend.app.dedupe.normalization import name_match_key, phone_match_key
from backend.app.dedupe.ranking import PrimarySelector

LOGGER = logging.getLogger(__name__)

KeyFunction = Callable[[AccountSnapshot], str]


def _group_by(
    accounts: Sequence[AccountSnapshot], key: KeyFunction, skip: Set[str]
) -> List[List[AccountSnapshot]]:
    """Bucket accounts by ``key`` and keep buckets with two or more members."""

    buckets: Dict[str, List[AccountSnapshot]] = defaultdict(list)
    for account in accounts:
        if account.account_id in skip:
            continue
        value = key(account)
        if value:
            buckets[value].append(account)
    return [members for members in buckets.values() if len(members) > 1]


class DuplicateScanner:
    """Detect duplicate groups across all active client and business accounts.

    Clients are grouped by phone first, then by first name and birthday for
    accounts not already grouped. Businesses are grouped by name first, then
    by phone. Every group is enriched and ranked like a targeted search.
    """

    def __init__(
        self,
        repository: AccountRepository,
        enrichment: EnrichmentCollector,
        selector: PrimarySelector,
        config: DedupeConfig | None = None,
    ) -> None:
        self._repository = repository
        self._enrichment = enrichment
        self._selector = selector
        self._config = config or DedupeConfig()

    def _phone_key(self, account: AccountSnapshot) -> str:
        return phone_match_key(account.phone, self._config.phone_key_length)

    @staticmethod
    def _name_birthday_key(account: AccountSnapshot) -> str:
        name = name_match_key(account.first_name)
        if not name or account.birthday is None:
            return ""
        return f"{name}|{account.birthday.isoformat()}"

    def _business_name_key(self, account: AccountSnapshot) -> str:
        key = name_match_key(account.business_name)
        if len(key) < self._config.min_business_name_length:
            return ""
        return key

    async def scan(self) -> List[DuplicateGroup]:
        """Return every duplicate group found across the account base."""

        clients = await self._repository.list_active_profiles()
        businesses = await self._repository.list_active_businesses()
        groups: List[DuplicateGroup] = []
        groups.extend(
            await self._scan_kind(
                AccountKind.CLIENT,
                clients,
                [(["phone"], self._phone_key), (["first_name", "birthday"], self._name_birthday_key)],
            )
        )
        groups.extend(
            await self._scan_kind(
                AccountKind.BUSINESS,
                businesses,
                [(["business_name"], self._business_name_key), (["phone"], self._phone_key)],
            )
        )
        LOGGER.info(
            "Duplicate scan found %d group(s) across %d client(s) and %d business(es)",
            len(groups),
            len(clients),
            len(businesses),
        )
        return groups

    async def _scan_kind(
        self,
        kind: AccountKind,
        accounts: Sequence[AccountSnapshot],
        passes: Sequence[tuple[List[str], KeyFunction]],
    ) -> List[DuplicateGroup]:
        grouped: Set[str] = set()
        groups: List[DuplicateGroup] = []
        for criteria, key in passes:
            for members in _group_by(accounts, key, grouped):
                group = await self._build_group(kind, criteria, members)
                if group is None:
                    continue
                groups.append(group)
                grouped.update(group.account_ids)
        return groups

    async def _build_group(
        self, kind: AccountKind, criteria: List[str], members: Sequence[AccountSnapshot]
    ) -> Optional[DuplicateGroup]:
        enriched = await self._enrichment.enrich(members)
        ranked, primary_id = self._selector.select(enriched)
        return DuplicateGroup(
            kind=kind,
            confidence=MatchConfidence.HIGH,
            match_criteria=list(criteria),
            accounts=ranked,
            recommended_primary=primary_id,
        )


__all__ = ["DuplicateScanner"]
