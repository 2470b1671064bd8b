"""Shared database fixtures for the deduplication tests."""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backend.app.accounts.models import AccountsBase, AuthIdentity, BusinessAccount, Profile
from backend.app.audit.models import AuditBase
from backend.app.auth.enums import AdminRole
from backend.app.auth.models import AuthBase
from backend.app.auth.repository import AuthRepository
from backend.app.auth.schemas import AdminContext
from backend.app.config import AppConfig, DatabaseConfig, load_config
from backend.app.dedupe.review import ReviewBase

T = TypeVar("T")

METADATA = (AuthBase.metadata, AccountsBase.metadata, AuditBase.metadata, ReviewBase.metadata)


def at(day: int, hour: int = 0) -> datetime:
    """Return a fixed creation timestamp in January 2024."""

    return datetime(2024, 1, day, hour, tzinfo=timezone.utc)


class Database:
    """File-backed sqlite database; each ``run`` uses a fresh engine and session."""

    def __init__(self, path: Path) -> None:
        self.url = f"sqlite+aiosqlite:///{path}"

    def run(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async def _main() -> T:
            engine = create_async_engine(self.url)
            try:
                async with engine.begin() as connection:
                    for metadata in METADATA:
                        await connection.run_sync(metadata.create_all)
                session_factory = async_sessionmaker(engine, expire_on_commit=False)
                async with session_factory() as session:
                    return await operation(session)
            finally:
                await engine.dispose()

        return asyncio.run(_main())

    def config(self) -> AppConfig:
        return load_config().model_copy(update={"database": DatabaseConfig(url=self.url)})

    @staticmethod
    async def add_profile(
        session: AsyncSession,
        user_id: str,
        *,
        first_name: str = "Awa",
        last_name: Optional[str] = "Diop",
        birthday: Optional[date] = date(1990, 5, 12),
        phone: Optional[str] = None,
        country_code: Optional[str] = "SN",
        created_at: Optional[datetime] = None,
        is_suspended: bool = False,
    ) -> None:
        session.add(
            Profile(
                user_id=user_id,
                first_name=first_name,
                last_name=last_name,
                birthday=birthday,
                phone=phone,
                country_code=country_code,
                created_at=created_at or at(1),
                is_suspended=is_suspended,
            )
        )
        await session.commit()

    @staticmethod
    async def add_identity(
        session: AsyncSession,
        user_id: str,
        *,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> None:
        session.add(AuthIdentity(user_id=user_id, phone=phone, email=email, provider=provider))
        await session.commit()

    @staticmethod
    async def add_business(
        session: AsyncSession,
        business_id: str,
        *,
        user_id: str,
        business_name: str,
        phone: Optional[str] = None,
        is_verified: bool = False,
        country_code: Optional[str] = "SN",
        created_at: Optional[datetime] = None,
    ) -> None:
        session.add(
            BusinessAccount(
                id=business_id,
                user_id=user_id,
                business_name=business_name,
                phone=phone,
                is_verified=is_verified,
                country_code=country_code,
                created_at=created_at or at(1),
            )
        )
        await session.commit()

    @staticmethod
    async def add_owned(session: AsyncSession, model: type, count: int, **fields: Any) -> None:
        """Insert ``count`` rows of ``model`` with the given ownership fields."""

        for _ in range(count):
            session.add(model(**fields))
        await session.commit()

    @staticmethod
    async def add_admin(
        session: AsyncSession,
        user_id: str,
        *,
        role: AdminRole = AdminRole.SUPER_ADMIN,
        countries: Sequence[str] = (),
        is_active: bool = True,
    ) -> None:
        repository = AuthRepository(session)
        await repository.create_admin(
            user_id, role=role, assigned_countries=list(countries), is_active=is_active
        )
        await repository.commit()


@pytest.fixture()
def db(tmp_path: Path) -> Database:
    return Database(tmp_path / "dedupe.db")


@pytest.fixture()
def super_admin() -> AdminContext:
    return AdminContext(user_id="admin-1", role=AdminRole.SUPER_ADMIN)
