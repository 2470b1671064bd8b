"""Candidate lookup for client and business duplicate searches."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from backend.app.accounts.repository import AccountRepository, business_snapshot
from backend.app.dedupe.errors import InvalidRequestError
from backend.app.dedupe.models import AccountKind, AccountSnapshot, MatchConfidence
from backend.app.dedupe.normalization import names_match, normalize_name, normalize_phone

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DuplicateSearch:
    """Validated search criteria for one account kind."""

    kind: AccountKind
    first_name: Optional[str] = None
    birthday: Optional[date] = None
    business_name: Optional[str] = None
    business_phone: Optional[str] = None

    @classmethod
    def build(
        cls,
        account_type: Optional[str],
        *,
        first_name: Optional[str] = None,
        birthday: Union[date, str, None] = None,
        business_name: Optional[str] = None,
        business_phone: Optional[str] = None,
    ) -> "DuplicateSearch":
        """Validate raw request fields.

        Raises:
            InvalidRequestError: When the type is unknown or the fields
                required for that type are missing.
        """

        try:
            kind = AccountKind((account_type or "").strip().lower())
        except ValueError as exc:
            raise InvalidRequestError('Invalid type. Must be "client" or "business"') from exc

        if kind is AccountKind.CLIENT:
            parsed = _parse_birthday(birthday)
            if not (first_name and first_name.strip()) or parsed is None:
                raise InvalidRequestError("first_name and birthday are required for client search")
            return cls(kind=kind, first_name=first_name.strip(), birthday=parsed)

        name = business_name.strip() if business_name and business_name.strip() else None
        phone = normalize_phone(business_phone) or None
        if name is None and phone is None:
            raise InvalidRequestError("business_name or business_phone required for business search")
        return cls(kind=kind, business_name=name, business_phone=phone)

    @property
    def match_criteria(self) -> List[str]:
        if self.kind is AccountKind.CLIENT:
            return ["first_name", "birthday"]
        criteria: List[str] = []
        if self.business_name:
            criteria.append("business_name")
        if self.business_phone:
            criteria.append("phone")
        return criteria

    def confidence(self, name_only: MatchConfidence = MatchConfidence.MEDIUM) -> MatchConfidence:
        """Return the confidence of groups produced by this search."""

        if self.kind is AccountKind.BUSINESS and not self.business_phone:
            return name_only
        return MatchConfidence.HIGH


class DuplicateFinder:
    """Look up the accounts matching a duplicate search."""

    def __init__(self, repository: AccountRepository) -> None:
        self._repository = repository

    async def find(self, search: DuplicateSearch) -> List[AccountSnapshot]:
        """Return the candidates matching ``search``, oldest first."""

        if search.kind is AccountKind.CLIENT:
            if search.first_name is None or search.birthday is None:
                raise InvalidRequestError("first_name and birthday are required for client search")
            born_on = await self._repository.find_clients_born_on(search.birthday)
            candidates = [
                account for account in born_on if names_match(account.first_name, search.first_name)
            ]
        else:
            candidates = await self._find_businesses(search)
        LOGGER.info(
            "Duplicate search returned %d candidate(s)",
            len(candidates),
            extra={"kind": search.kind.value, "criteria": search.match_criteria},
        )
        return candidates

    async def _find_businesses(self, search: DuplicateSearch) -> List[AccountSnapshot]:
        wanted_name = normalize_name(search.business_name)
        wanted_phone = search.business_phone or ""
        if wanted_name:
            rows = await self._repository.find_businesses()
        else:
            rows = await self._repository.find_businesses(phone_digits=wanted_phone.lstrip("+"))
        matches: List[AccountSnapshot] = []
        for business in rows:
            name_hit = bool(wanted_name) and wanted_name in normalize_name(business.business_name)
            phone_hit = bool(wanted_phone) and _phone_contains(business.phone, wanted_phone)
            if name_hit or phone_hit:
                matches.append(business_snapshot(business))
        return matches


def _parse_birthday(value: Union[date, str, None]) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise InvalidRequestError("birthday must be a date in YYYY-MM-DD format") from exc


def _phone_contains(stored: Optional[str], wanted: str) -> bool:
    """Return whether the normalized stored phone contains ``wanted``."""

    normalized = normalize_phone(stored)
    if not normalized:
        return False
    if wanted in normalized:
        return True
    return wanted.lstrip("+") in normalized.lstrip("+")


__all__ = ["DuplicateFinder", "DuplicateSearch"]
