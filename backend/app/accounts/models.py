"""SQLAlchemy ORM models for client/business accounts and the records they own."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class AccountsBase(DeclarativeBase):
    """Base declarative class for account-owned data."""


class Profile(AccountsBase):
    """Client profile keyed by the underlying user id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(120))
    last_name: Mapped[Optional[str]] = mapped_column(String(120))
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    city: Mapped[Optional[str]] = mapped_column(String(120))
    birthday: Mapped[Optional[date]] = mapped_column(Date, index=True)
    bio: Mapped[Optional[str]] = mapped_column(Text)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(512))
    country_code: Mapped[Optional[str]] = mapped_column(String(2))
    is_suspended: Mapped[bool] = mapped_column(Boolean, default=False)
    merge_state: Mapped[Optional[str]] = mapped_column(String(16))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class AuthIdentity(AccountsBase):
    """Sign-in credentials attached to a user."""

    __tablename__ = "auth_identities"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    email: Mapped[Optional[str]] = mapped_column(String(320))
    provider: Mapped[Optional[str]] = mapped_column(String(32))


class BusinessAccount(AccountsBase):
    """Business profile owned by a user."""

    __tablename__ = "business_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    business_name: Mapped[str] = mapped_column(String(255), index=True)
    business_type: Mapped[Optional[str]] = mapped_column(String(120))
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    email: Mapped[Optional[str]] = mapped_column(String(320))
    address: Mapped[Optional[str]] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text)
    country_code: Mapped[Optional[str]] = mapped_column(String(2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[Optional[str]] = mapped_column(String(32), default="active")
    merge_state: Mapped[Optional[str]] = mapped_column(String(16))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Contact(AccountsBase):
    __tablename__ = "contacts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    birthday: Mapped[Optional[date]] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class CollectiveFund(AccountsBase):
    __tablename__ = "collective_funds"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    creator_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    created_by_business_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    target_amount: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class FundContribution(AccountsBase):
    __tablename__ = "fund_contributions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    fund_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    contributor_id: Mapped[str] = mapped_column(String(36), index=True)
    amount: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Post(AccountsBase):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    content: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class PostComment(AccountsBase):
    __tablename__ = "post_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    post_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    content: Mapped[str] = mapped_column(Text, default="")


class PostReaction(AccountsBase):
    __tablename__ = "post_reactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    post_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    reaction_type: Mapped[str] = mapped_column(String(32), default="like")


class FundComment(AccountsBase):
    __tablename__ = "fund_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    fund_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    content: Mapped[str] = mapped_column(Text, default="")


class Notification(AccountsBase):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)


class UserFavorite(AccountsBase):
    __tablename__ = "user_favorites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    product_id: Mapped[Optional[str]] = mapped_column(String(36))


class UserBadge(AccountsBase):
    __tablename__ = "user_badges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    badge_key: Mapped[str] = mapped_column(String(64), default="")


class BusinessOrder(AccountsBase):
    __tablename__ = "business_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    customer_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    business_account_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    total_amount: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Product(AccountsBase):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    business_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    business_owner_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    price: Mapped[Optional[float]] = mapped_column(Float)


class ReciprocityScore(AccountsBase):
    __tablename__ = "reciprocity_scores"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    score: Mapped[int] = mapped_column(Integer, default=0)


class CommunityScore(AccountsBase):
    __tablename__ = "community_scores"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    points: Mapped[int] = mapped_column(Integer, default=0)


__all__ = [
    "AccountsBase",
    "AuthIdentity",
    "BusinessAccount",
    "BusinessOrder",
    "CollectiveFund",
    "CommunityScore",
    "Contact",
    "FundComment",
    "FundContribution",
    "Notification",
    "Post",
    "PostComment",
    "PostReaction",
    "Product",
    "Profile",
    "ReciprocityScore",
    "UserBadge",
    "UserFavorite",
]
