"""Tests for bearer token handling and administrator resolution."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Tuple

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from backend.app.auth.enums import AdminRole
from backend.app.auth.models import AuthBase
from backend.app.auth.repository import AuthRepository
from backend.app.auth.router import status_from_reason
from backend.app.auth.schemas import AdminContext
from backend.app.auth.service import AuthService, AuthServiceError
from backend.app.auth.utils import JWTError, JWTManager
from backend.app.config import AuthJWTConfig

JWT_CONFIG = AuthJWTConfig(
    secret_key="super-secret-key-that-is-long-enough-123456",
    algorithm="HS256",
    access_token_expires_minutes=5,
)


async def _setup_repository() -> Tuple[AuthRepository, AsyncEngine]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as connection:
        await connection.run_sync(AuthBase.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    session = session_factory()
    repo = AuthRepository(session)
    return repo, engine


def test_jwt_expiry_enforced() -> None:
    manager = JWTManager(JWT_CONFIG)
    token = manager.create_access_token(
        "user-id",
        expires_delta=timedelta(seconds=1),
        issued_at=datetime.now(timezone.utc) - timedelta(seconds=5),
    )
    with pytest.raises(JWTError):
        manager.decode(token)


def test_jwt_round_trip_keeps_subject_and_claims() -> None:
    manager = JWTManager(JWT_CONFIG)
    token = manager.create_access_token("admin-1", additional_claims={"scope": "dedupe"})
    payload = manager.decode(token)
    assert payload["sub"] == "admin-1"
    assert payload["scope"] == "dedupe"
    assert payload["exp"] - payload["iat"] == 300


def test_short_signing_key_rejected() -> None:
    with pytest.raises(ValidationError):
        AuthJWTConfig(secret_key="short", access_token_expires_minutes=5)


def test_admin_context_country_scope() -> None:
    unrestricted = AdminContext(user_id="admin-1", role=AdminRole.SUPER_ADMIN)
    assert not unrestricted.is_country_scoped
    assert unrestricted.can_access_country("FR")

    scoped = AdminContext(user_id="admin-2", role=AdminRole.ADMIN, assigned_countries=["sn", "CI"])
    assert scoped.is_country_scoped
    assert scoped.can_access_country("SN")
    assert scoped.can_access_country("ci")
    assert not scoped.can_access_country("FR")
    assert scoped.can_access_country(None)

    with pytest.raises(ValidationError):
        AdminContext(user_id="", role=AdminRole.ADMIN)


def test_repository_returns_only_active_admins() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        try:
            await repo.create_admin(
                "admin-1",
                role=AdminRole.SUPER_ADMIN,
                email=" Root@Example.com ",
                assigned_countries=["SN"],
            )
            await repo.create_admin("retired", is_active=False)
            await repo.commit()

            admin = await repo.get_active_admin("admin-1")
            assert admin is not None
            assert admin.email == "root@example.com"
            assert admin.role == AdminRole.SUPER_ADMIN
            assert admin.assigned_countries == ["SN"]
            assert await repo.get_active_admin("retired") is None
            assert await repo.get_active_admin("nobody") is None
        finally:
            await repo.session.close()
            await engine.dispose()

    asyncio.run(_run())


def test_authenticate_resolves_admin_context() -> None:
    async def _run() -> AdminContext:
        repo, engine = await _setup_repository()
        try:
            await repo.create_admin("admin-2", role=AdminRole.ADMIN, assigned_countries=["CI"])
            await repo.commit()
            manager = JWTManager(JWT_CONFIG)
            service = AuthService(repository=repo, jwt_manager=manager)
            return await service.authenticate(manager.create_access_token("admin-2"))
        finally:
            await repo.session.close()
            await engine.dispose()

    context = asyncio.run(_run())
    assert context == AdminContext(
        user_id="admin-2", role=AdminRole.ADMIN, assigned_countries=["CI"]
    )


def test_authenticate_rejects_bad_tokens_and_non_admins() -> None:
    async def _run() -> None:
        repo, engine = await _setup_repository()
        try:
            manager = JWTManager(JWT_CONFIG)
            service = AuthService(repository=repo, jwt_manager=manager)

            with pytest.raises(AuthServiceError) as invalid:
                await service.authenticate("not-a-token")
            assert invalid.value.reason == "unauthorized"

            other = JWTManager(
                JWT_CONFIG.model_copy(update={"secret_key": "another-secret-key-that-is-long-enough-9"})
            )
            with pytest.raises(AuthServiceError) as foreign:
                await service.authenticate(other.create_access_token("admin-1"))
            assert foreign.value.reason == "unauthorized"

            with pytest.raises(AuthServiceError) as stranger:
                await service.authenticate(manager.create_access_token("user-1"))
            assert stranger.value.reason == "forbidden"
            assert str(stranger.value) == "Admin access required"
        finally:
            await repo.session.close()
            await engine.dispose()

    asyncio.run(_run())


def test_status_from_reason_mapping() -> None:
    assert status_from_reason("unauthorized") == 401
    assert status_from_reason("forbidden") == 403
    assert status_from_reason("not_found") == 404
    assert status_from_reason("conflict") == 409
    assert status_from_reason("internal") == 500
    assert status_from_reason("anything-else") == 400
