"""Repository handling persistence for administrator records."""
from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.auth.enums import AdminRole
from backend.app.auth.models import AdminUser


class AuthRepository:
    """Provide database access helpers for administrator lookups."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Return the underlying SQLAlchemy session."""

        return self._session

    async def create_admin(
        self,
        user_id: str,
        *,
        role: AdminRole = AdminRole.MODERATOR,
        email: Optional[str] = None,
        assigned_countries: Optional[Sequence[str]] = None,
        is_active: bool = True,
    ) -> AdminUser:
        """Persist a new administrator entry."""

        admin = AdminUser(
            user_id=user_id,
            email=email.strip().lower() if email else None,
            role=role,
            is_active=is_active,
            assigned_countries=list(assigned_countries) if assigned_countries else None,
        )
        self._session.add(admin)
        await self._session.flush()
        return admin

    async def get_active_admin(self, user_id: str) -> Optional[AdminUser]:
        """Retrieve an active administrator by the underlying user id."""

        result = await self._session.execute(
            select(AdminUser).where(AdminUser.user_id == user_id, AdminUser.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def commit(self) -> None:
        """Commit the current transaction."""

        await self._session.commit()


__all__ = ["AuthRepository"]
