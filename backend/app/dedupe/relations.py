"""Ownership relations reassigned when two accounts are merged.

Each descriptor names the ledger entry and the mapped column holding the
owner's identifier. Adding a relation only requires a new
descriptor in the matching registry.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from sqlalchemy.orm import InstrumentedAttribute

from backend.app.accounts.models import (
    BusinessAccount,
    BusinessOrder,
    CollectiveFund,
    CommunityScore,
    Contact,
    FundComment,
    FundContribution,
    Notification,
    Post,
    PostComment,
    PostReaction,
    Product,
    ReciprocityScore,
    UserBadge,
    UserFavorite,
)
from backend.app.dedupe.models import AccountKind


@dataclass(frozen=True)
class RelationSpec:
    """Descriptor of one ownership relation."""

    name: str
    owner_column: InstrumentedAttribute[Any]


CLIENT_RELATIONS: Tuple[RelationSpec, ...] = (
    RelationSpec("contacts", Contact.user_id),
    RelationSpec("collective_funds", CollectiveFund.creator_id),
    RelationSpec("fund_contributions", FundContribution.contributor_id),
    RelationSpec("posts", Post.user_id),
    RelationSpec("post_comments", PostComment.user_id),
    RelationSpec("post_reactions", PostReaction.user_id),
    RelationSpec("fund_comments", FundComment.user_id),
    RelationSpec("notifications", Notification.user_id),
    RelationSpec("user_favorites", UserFavorite.user_id),
    RelationSpec("user_badges", UserBadge.user_id),
    RelationSpec("business_accounts", BusinessAccount.user_id),
    RelationSpec("business_orders", BusinessOrder.customer_id),
    RelationSpec("reciprocity_scores", ReciprocityScore.user_id),
    RelationSpec("community_scores", CommunityScore.user_id),
)

BUSINESS_RELATIONS: Tuple[RelationSpec, ...] = (
    RelationSpec("products", Product.business_id),
    RelationSpec("business_orders", BusinessOrder.business_account_id),
    RelationSpec("collective_funds", CollectiveFund.created_by_business_id),
)

DEFAULT_RELATIONS: Dict[AccountKind, Tuple[RelationSpec, ...]] = {
    AccountKind.CLIENT: CLIENT_RELATIONS,
    AccountKind.BUSINESS: BUSINESS_RELATIONS,
}


__all__ = ["BUSINESS_RELATIONS", "CLIENT_RELATIONS", "DEFAULT_RELATIONS", "RelationSpec"]
