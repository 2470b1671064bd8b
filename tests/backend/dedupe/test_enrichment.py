from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from backend.app.accounts.models import (
    BusinessOrder,
    CollectiveFund,
    Contact,
    FundContribution,
    Post,
    Product,
)
from backend.app.accounts.repository import AccountRepository
from backend.app.dedupe.enrichment import CLIENT_SIGNALS, EnrichmentCollector, SignalQuery


class _DetachedBase(DeclarativeBase):
    """Tables that are never created, used to make a signal query fail."""


class _MissingTable(_DetachedBase):
    __tablename__ = "missing_contacts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36))


def test_client_signals_and_auth_methods(db) -> None:
    latest = datetime(2024, 3, 5, 12, tzinfo=timezone.utc)

    async def _run(session):
        await db.add_profile(session, "user-a")
        await db.add_identity(session, "user-a", phone="+221771234567", email="awa@example.com", provider="google")
        await db.add_owned(session, Contact, 3, user_id="user-a")
        await db.add_owned(session, CollectiveFund, 2, creator_id="user-a")
        await db.add_owned(session, FundContribution, 4, contributor_id="user-a")
        await db.add_owned(session, BusinessOrder, 1, customer_id="user-a")
        await db.add_owned(session, Post, 1, user_id="user-a", created_at=datetime(2024, 1, 2, tzinfo=timezone.utc))
        await db.add_owned(session, Post, 1, user_id="user-a", created_at=latest)
        repository = AccountRepository(session)
        account = await repository.resolve("user-a")
        return await EnrichmentCollector(repository).enrich_one(account)

    enriched = db.run(_run)
    assert enriched.auth_methods == ["phone", "google"]
    assert enriched.data_count.as_dict() == {
        "contacts": 3,
        "funds": 2,
        "contributions": 4,
        "posts": 2,
        "orders": 1,
        "products": 0,
    }
    assert enriched.last_active.replace(tzinfo=timezone.utc) == latest
    assert enriched.degraded_signals == []


def test_business_signals_use_business_id(db) -> None:
    async def _run(session):
        await db.add_business(session, "biz-1", user_id="owner-1", business_name="Teranga")
        await db.add_identity(session, "owner-1", email="owner@example.com")
        await db.add_owned(session, Product, 5, business_id="biz-1")
        await db.add_owned(session, Product, 2, business_id="biz-other")
        await db.add_owned(session, BusinessOrder, 3, business_account_id="biz-1")
        await db.add_owned(session, CollectiveFund, 1, created_by_business_id="biz-1")
        repository = AccountRepository(session)
        account = await repository.resolve("biz-1")
        return await EnrichmentCollector(repository).enrich_one(account)

    enriched = db.run(_run)
    assert enriched.auth_methods == ["email"]
    assert enriched.data_count.products == 5
    assert enriched.data_count.orders == 3
    assert enriched.data_count.funds == 1
    assert enriched.data_count.contacts == 0
    assert enriched.last_active is None


def test_candidate_without_identity_has_no_auth_methods(db) -> None:
    async def _run(session):
        await db.add_profile(session, "user-a")
        repository = AccountRepository(session)
        return await EnrichmentCollector(repository).enrich_one(await repository.resolve("user-a"))

    enriched = db.run(_run)
    assert enriched.auth_methods == []
    assert enriched.last_active is None


def test_failing_signal_degrades_only_that_field(db, caplog) -> None:
    signals = (SignalQuery("contacts", _MissingTable.user_id),) + tuple(
        signal for signal in CLIENT_SIGNALS if signal.field != "contacts"
    )

    async def _run(session):
        await db.add_profile(session, "user-a")
        await db.add_owned(session, Post, 2, user_id="user-a")
        await db.add_owned(session, CollectiveFund, 1, creator_id="user-a")
        repository = AccountRepository(session)
        account = await repository.resolve("user-a")
        collector = EnrichmentCollector(repository, client_signals=signals)
        return await collector.enrich([account])

    with caplog.at_level(logging.WARNING, logger="backend.app.dedupe.enrichment"):
        (enriched,) = db.run(_run)

    assert enriched.degraded_signals == ["contacts"]
    assert enriched.data_count.contacts == 0
    assert enriched.data_count.posts == 2
    assert enriched.data_count.funds == 1
    assert any(record.signal == "contacts" for record in caplog.records)
