"""Deterministic selection of the primary account within a duplicate group."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from backend.app.config import BusinessRankingWeights, ClientRankingWeights, RankingConfig
from backend.app.dedupe.models import AccountKind, EnrichedAccount


def _ensure_timezone(value: datetime) -> datetime:
    """Return a timezone-aware datetime normalised to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PrimarySelector:
    """Rank duplicate candidates and recommend the account to keep.

    Clients rank by a weighted sum of contacts, created funds and posts.
    Businesses rank verified accounts first, then by a weighted sum of
    products and orders. Ties fall back to the oldest account, then to the
    account id so the order never depends on input order.
    """

    def __init__(self, config: RankingConfig | None = None) -> None:
        self._config = config or RankingConfig()

    @property
    def client_weights(self) -> ClientRankingWeights:
        return self._config.client

    @property
    def business_weights(self) -> BusinessRankingWeights:
        return self._config.business

    def score(self, candidate: EnrichedAccount) -> int:
        """Return the data-richness score of a candidate."""

        counts = candidate.data_count
        if candidate.account.kind is AccountKind.CLIENT:
            weights = self.client_weights
            return (
                weights.contacts * counts.contacts
                + weights.funds * counts.funds
                + weights.posts * counts.posts
            )
        business = self.business_weights
        return business.products * counts.products + business.orders * counts.orders

    def _sort_key(self, candidate: EnrichedAccount) -> Tuple[int, int, datetime, str]:
        unverified = 0
        if candidate.account.kind is AccountKind.BUSINESS and not candidate.account.is_verified:
            unverified = 1
        return (
            unverified,
            -self.score(candidate),
            _ensure_timezone(candidate.created_at),
            candidate.account_id,
        )

    def rank(self, candidates: Sequence[EnrichedAccount]) -> List[EnrichedAccount]:
        """Return candidates sorted from most to least suitable primary."""

        return sorted(candidates, key=self._sort_key)

    def select(self, candidates: Sequence[EnrichedAccount]) -> Tuple[List[EnrichedAccount], str]:
        """Return the ranked list and the recommended primary account id."""

        if not candidates:
            raise ValueError("Cannot select a primary from an empty candidate list")
        ranked = self.rank(candidates)
        return ranked, ranked[0].account_id


__all__ = ["PrimarySelector"]
