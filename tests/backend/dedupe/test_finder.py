from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from backend.app.accounts.repository import AccountRepository
from backend.app.dedupe.errors import InvalidRequestError
from backend.app.dedupe.finder import DuplicateFinder, DuplicateSearch
from backend.app.dedupe.models import AccountKind, MatchConfidence
from backend.app.dedupe.service import DedupeService


def test_client_search_requires_first_name_and_birthday() -> None:
    with pytest.raises(InvalidRequestError, match="first_name and birthday"):
        DuplicateSearch.build("client", first_name="Awa")
    with pytest.raises(InvalidRequestError):
        DuplicateSearch.build("client", first_name="   ", birthday=date(1990, 5, 12))


def test_business_search_requires_name_or_phone() -> None:
    with pytest.raises(InvalidRequestError, match="business_name or business_phone"):
        DuplicateSearch.build("business", business_name=" ", business_phone="--")


def test_unknown_type_rejected() -> None:
    with pytest.raises(InvalidRequestError, match="Invalid type"):
        DuplicateSearch.build("vendor", business_name="Teranga")
    with pytest.raises(InvalidRequestError):
        DuplicateSearch.build(None)


def test_match_criteria_and_confidence() -> None:
    client = DuplicateSearch.build("Client", first_name="Awa", birthday=date(1990, 5, 12))
    assert client.kind is AccountKind.CLIENT
    assert client.match_criteria == ["first_name", "birthday"]
    assert client.confidence() is MatchConfidence.HIGH

    name_only = DuplicateSearch.build("business", business_name="Teranga")
    assert name_only.match_criteria == ["business_name"]
    assert name_only.confidence() is MatchConfidence.MEDIUM

    both = DuplicateSearch.build("business", business_name="Teranga", business_phone="+221 77 1")
    assert both.business_phone == "+221771"
    assert both.match_criteria == ["business_name", "phone"]
    assert both.confidence() is MatchConfidence.HIGH


def test_client_lookup_matches_case_insensitively_and_skips_suspended(db) -> None:
    birthday = date(1990, 5, 12)

    async def _run(session):
        await db.add_profile(session, "user-b", first_name="awa", created_at=datetime(2024, 2, 1, tzinfo=timezone.utc))
        await db.add_profile(session, "user-a", first_name="Awa", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        await db.add_profile(session, "user-c", first_name="AWA", is_suspended=True)
        await db.add_profile(session, "user-d", first_name="Awa", birthday=date(1991, 5, 12))
        await db.add_profile(session, "user-e", first_name="Awana")
        finder = DuplicateFinder(AccountRepository(session))
        search = DuplicateSearch.build("client", first_name=" AWA ", birthday=birthday)
        return await finder.find(search)

    candidates = db.run(_run)
    assert [candidate.account_id for candidate in candidates] == ["user-a", "user-b"]
    assert all(candidate.kind is AccountKind.CLIENT for candidate in candidates)


def test_business_lookup_matches_name_substring_or_phone(db) -> None:
    async def _run(session):
        await db.add_business(session, "biz-1", user_id="owner-1", business_name="Chez Teranga Dakar", phone="+221 77 100 00 00")
        await db.add_business(session, "biz-2", user_id="owner-2", business_name="Boutique Awa", phone="77-100-00-00")
        await db.add_business(session, "biz-3", user_id="owner-3", business_name="Unrelated", phone="+33 6 00 00 00 00")
        await db.add_business(session, "biz-4", user_id="owner-4", business_name="teranga 100%", phone=None)
        finder = DuplicateFinder(AccountRepository(session))
        by_name = await finder.find(DuplicateSearch.build("business", business_name="TERANGA"))
        by_phone = await finder.find(DuplicateSearch.build("business", business_phone="77 100 00 00"))
        by_both = await finder.find(
            DuplicateSearch.build("business", business_name="teranga", business_phone="771000000")
        )
        wildcard = await finder.find(DuplicateSearch.build("business", business_name="100%"))
        return by_name, by_phone, by_both, wildcard

    by_name, by_phone, by_both, wildcard = db.run(_run)
    assert {item.account_id for item in by_name} == {"biz-1", "biz-4"}
    assert {item.account_id for item in by_phone} == {"biz-1", "biz-2"}
    assert {item.account_id for item in by_both} == {"biz-1", "biz-2", "biz-4"}
    assert [item.account_id for item in wildcard] == ["biz-4"]
    assert all(item.kind is AccountKind.BUSINESS for item in by_both)


def test_birthday_accepts_iso_text_and_rejects_malformed_dates() -> None:
    search = DuplicateSearch.build("client", first_name="Awa", birthday=" 1990-05-12 ")
    assert search.birthday == date(1990, 5, 12)
    with pytest.raises(InvalidRequestError, match="YYYY-MM-DD"):
        DuplicateSearch.build("client", first_name="Awa", birthday="not-a-date")
    with pytest.raises(InvalidRequestError, match="first_name and birthday"):
        DuplicateSearch.build("client", first_name="Awa", birthday="  ")


def test_accented_names_match_regardless_of_case(db) -> None:
    birthday = date(1988, 3, 9)

    async def _run(session):
        await db.add_profile(session, "user-1", first_name="Élodie", birthday=birthday, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        await db.add_profile(session, "user-2", first_name="élodie", birthday=birthday, created_at=datetime(2024, 2, 1, tzinfo=timezone.utc))
        await db.add_profile(session, "user-3", first_name="Elodie", birthday=birthday)
        await db.add_business(session, "biz-1", user_id="owner-1", business_name="CAFÉ TERANGA")
        await db.add_business(session, "biz-2", user_id="owner-2", business_name="Café Teranga")
        await db.add_business(session, "biz-3", user_id="owner-3", business_name="Cafe Teranga")
        finder = DuplicateFinder(AccountRepository(session))
        clients = await finder.find(DuplicateSearch.build("client", first_name="élodie", birthday=birthday))
        businesses = await finder.find(DuplicateSearch.build("business", business_name="café"))
        return clients, businesses

    clients, businesses = db.run(_run)
    assert [item.account_id for item in clients] == ["user-1", "user-2"]
    assert {item.account_id for item in businesses} == {"biz-1", "biz-2"}


def test_phone_search_ignores_stored_separators(db) -> None:
    async def _run(session):
        await db.add_business(session, "biz-1", user_id="owner-1", business_name="Alpha", phone="(+221) 33.900.00.09")
        await db.add_business(session, "biz-2", user_id="owner-2", business_name="Beta", phone="33/900/00/09")
        await db.add_business(session, "biz-3", user_id="owner-3", business_name="Gamma", phone="+221 33 800 00 01")
        await db.add_business(session, "biz-4", user_id="owner-4", business_name="Delta", phone="33 900 00 09")
        finder = DuplicateFinder(AccountRepository(session))
        return await finder.find(DuplicateSearch.build("business", business_phone="33 900 00 09"))

    matches = db.run(_run)
    assert {item.account_id for item in matches} == {"biz-1", "biz-2", "biz-4"}


def test_single_match_message_differs_from_no_match(db, super_admin) -> None:
    async def _run(session):
        await db.add_profile(session, "user-1", first_name="Moussa")
        service = DedupeService(session, db.config())
        single = await service.find_duplicates(
            super_admin, account_type="client", first_name="moussa", birthday="1990-05-12"
        )
        none = await service.find_duplicates(
            super_admin, account_type="client", first_name="Ibrahima", birthday="1990-05-12"
        )
        return single, none

    single, none = db.run(_run)
    assert single.message == "Only one matching account found, no duplicates"
    assert single.duplicates == []
    assert none.message == "No matching account found"
    assert none.duplicates == []
