"""FastAPI dependencies resolving the authenticated administrator."""
from __future__ import annotations

from typing import AsyncIterator, cast

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.auth.repository import AuthRepository
from backend.app.auth.schemas import AdminContext
from backend.app.auth.service import AuthService, AuthServiceError
from backend.app.auth.utils import JWTManager

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def status_from_reason(reason: str) -> int:
    """Translate service error reasons into HTTP status codes."""

    mapping = {
        "bad_request": status.HTTP_400_BAD_REQUEST,
        "unauthorized": status.HTTP_401_UNAUTHORIZED,
        "forbidden": status.HTTP_403_FORBIDDEN,
        "not_found": status.HTTP_404_NOT_FOUND,
        "conflict": status.HTTP_409_CONFLICT,
        "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return mapping.get(reason, status.HTTP_400_BAD_REQUEST)


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a database session bound to the application engine."""

    session_factory = cast(async_sessionmaker[AsyncSession], request.app.state.session_factory)
    async with session_factory() as session:
        yield session


def get_jwt_manager(request: Request) -> JWTManager:
    """Return the JWT manager stored on the app state."""

    return request.app.state.jwt_manager


async def get_auth_service(
    session: AsyncSession = Depends(get_db_session),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
) -> AuthService:
    """Construct an AuthService for the current request."""

    return AuthService(repository=AuthRepository(session), jwt_manager=jwt_manager)


async def get_current_admin(
    token: str | None = Depends(oauth2_scheme),
    service: AuthService = Depends(get_auth_service),
) -> AdminContext:
    """Validate the bearer token and return the caller's admin context."""

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await service.authenticate(token)
    except AuthServiceError as exc:
        raise HTTPException(status_code=status_from_reason(exc.reason), detail=str(exc)) from exc


__all__ = [
    "get_current_admin",
    "get_auth_service",
    "get_db_session",
    "get_jwt_manager",
    "oauth2_scheme",
    "status_from_reason",
]
