"""Repository handling account lookups and ownership reassignment."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from backend.app.accounts.models import AuthIdentity, BusinessAccount, Post, Profile
from backend.app.dedupe.models import AccountKind, AccountSnapshot

MERGE_STATE_MERGING = "merging"
MERGE_STATE_MERGED = "merged"
_PHONE_SEPARATORS = (" ", "-", ".", "(", ")", "/", "+")


def _phone_digits(column: Any) -> Any:
    """SQL expression stripping common separators from a stored phone."""

    expression = column
    for separator in _PHONE_SEPARATORS:
        expression = func.replace(expression, separator, "")
    return expression


def profile_snapshot(profile: Profile, identity: Optional[AuthIdentity] = None) -> AccountSnapshot:
    """Detach a client profile into an ``AccountSnapshot``."""

    return AccountSnapshot(
        account_id=profile.user_id,
        kind=AccountKind.CLIENT,
        user_id=profile.user_id,
        created_at=profile.created_at,
        first_name=profile.first_name,
        last_name=profile.last_name,
        phone=profile.phone,
        city=profile.city,
        birthday=profile.birthday,
        country_code=profile.country_code,
        is_suspended=bool(profile.is_suspended),
        email=identity.email if identity is not None else None,
    )


def business_snapshot(business: BusinessAccount) -> AccountSnapshot:
    """Detach a business account into an ``AccountSnapshot``."""

    return AccountSnapshot(
        account_id=business.id,
        kind=AccountKind.BUSINESS,
        user_id=business.user_id,
        created_at=business.created_at,
        phone=business.phone,
        country_code=business.country_code,
        is_suspended=not business.is_active,
        is_verified=bool(business.is_verified),
        business_name=business.business_name,
        business_type=business.business_type,
        email=business.email,
    )


class AccountRepository:
    """Provide database access helpers for the deduplication workflows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Return the underlying SQLAlchemy session."""

        return self._session

    async def find_clients_born_on(self, birthday: date) -> List[AccountSnapshot]:
        """Return non-suspended profiles with the given birthday.

        First names are compared by the caller; SQLite's ``lower`` only
        folds ASCII letters.
        """

        result = await self._session.execute(
            select(Profile)
            .where(Profile.birthday == birthday, Profile.is_suspended.is_(False))
            .order_by(Profile.created_at)
        )
        return [profile_snapshot(profile) for profile in result.scalars().all()]

    async def find_businesses(self, phone_digits: Optional[str] = None) -> List[BusinessAccount]:
        """Return active businesses, oldest first.

        With ``phone_digits`` only businesses whose stored phone contains
        those digits once common separators are removed are returned.
        Without it every active business is loaded, so name searches cost
        a full pass over active businesses like the duplicate scan does.
        """

        statement = select(BusinessAccount).where(BusinessAccount.is_active.is_(True))
        if phone_digits:
            statement = statement.where(
                BusinessAccount.phone.is_not(None),
                _phone_digits(BusinessAccount.phone).contains(phone_digits),
            )
        result = await self._session.execute(statement.order_by(BusinessAccount.created_at))
        return list(result.scalars().all())

    async def list_active_profiles(self) -> List[AccountSnapshot]:
        """Return all non-suspended profiles, oldest first."""

        result = await self._session.execute(
            select(Profile).where(Profile.is_suspended.is_(False)).order_by(Profile.created_at)
        )
        return [profile_snapshot(profile) for profile in result.scalars().all()]

    async def list_active_businesses(self) -> List[AccountSnapshot]:
        """Return all active business accounts, oldest first."""

        result = await self._session.execute(
            select(BusinessAccount)
            .where(BusinessAccount.is_active.is_(True))
            .order_by(BusinessAccount.created_at)
        )
        return [business_snapshot(business) for business in result.scalars().all()]

    async def get_identity(self, user_id: str) -> Optional[AuthIdentity]:
        """Return the stored sign-in identity for a user."""

        return await self._session.get(AuthIdentity, user_id)

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        """Return the client profile for a user id."""

        result = await self._session.execute(select(Profile).where(Profile.user_id == user_id))
        return result.scalar_one_or_none()

    async def resolve(self, account_id: str) -> Optional[AccountSnapshot]:
        """Resolve an identifier to a client profile, then to a business account."""

        profile = await self.get_profile(account_id)
        if profile is not None:
            return profile_snapshot(profile)
        business = await self._session.get(BusinessAccount, account_id)
        if business is not None:
            return business_snapshot(business)
        return None

    async def count_owned(self, column: InstrumentedAttribute[Any], owner_id: str) -> int:
        """Count rows whose ownership column equals ``owner_id``."""

        result = await self._session.execute(
            select(func.count()).select_from(column.class_).where(column == owner_id)
        )
        return int(result.scalar_one())

    async def latest_post_at(self, user_id: str) -> Optional[datetime]:
        """Return the timestamp of the user's most recent post."""

        result = await self._session.execute(
            select(func.max(Post.created_at)).where(Post.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def reassign_owner(
        self, column: InstrumentedAttribute[Any], secondary_id: str, primary_id: str
    ) -> int:
        """Point every row owned by ``secondary_id`` at ``primary_id``."""

        result = await self._session.execute(
            update(column.class_)
            .where(column == secondary_id)
            .values({column.key: primary_id})
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    async def claim_for_merge(self, account: AccountSnapshot) -> bool:
        """Mark the account as being merged unless another merge holds it."""

        model, key_column = self._state_target(account.kind)
        result = await self._session.execute(
            update(model)
            .where(
                key_column == account.account_id,
                or_(model.merge_state.is_(None), model.merge_state != MERGE_STATE_MERGING),
            )
            .values(merge_state=MERGE_STATE_MERGING)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def release_merge_claim(self, account: AccountSnapshot, state: Optional[str]) -> None:
        """Replace the merge claim with ``state``."""

        model, key_column = self._state_target(account.kind)
        await self._session.execute(
            update(model)
            .where(key_column == account.account_id)
            .values(merge_state=state)
            .execution_options(synchronize_session=False)
        )

    async def soft_disable(self, account: AccountSnapshot, note: str) -> None:
        """Suspend an account and append ``note`` to its profile text."""

        if account.kind is AccountKind.CLIENT:
            profile = await self.get_profile(account.account_id)
            if profile is None:
                raise LookupError(f"Profile {account.account_id} disappeared during merge")
            profile.is_suspended = True
            profile.bio = f"{profile.bio}\n{note}" if profile.bio else note
        else:
            business = await self._session.get(BusinessAccount, account.account_id)
            if business is None:
                raise LookupError(f"Business {account.account_id} disappeared during merge")
            business.is_active = False
            business.status = MERGE_STATE_MERGED
            business.description = f"{business.description}\n{note}" if business.description else note
        await self._session.flush()

    @staticmethod
    def _state_target(kind: AccountKind) -> tuple[Any, InstrumentedAttribute[Any]]:
        if kind is AccountKind.CLIENT:
            return Profile, Profile.user_id
        return BusinessAccount, BusinessAccount.id

    async def commit(self) -> None:
        """Commit the current transaction."""

        await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""

        await self._session.rollback()


__all__ = [
    "AccountRepository",
    "MERGE_STATE_MERGED",
    "MERGE_STATE_MERGING",
    "business_snapshot",
    "profile_snapshot",
]
