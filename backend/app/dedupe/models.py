"""Domain records exchanged between the finder, ranking and merge stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional


class AccountKind(str, Enum):
    """Kind of account a duplicate group or merge operates on."""

    CLIENT = "client"
    BUSINESS = "business"


class MatchConfidence(str, Enum):
    """Confidence attached to a duplicate group."""

    HIGH = "high"
    MEDIUM = "medium"


@dataclass(frozen=True)
class AccountSnapshot:
    """Detached view of a client profile or business account.

    ``account_id`` is the user id for clients and the business account id
    for businesses; ``user_id`` is always the owning user.
    """

    account_id: str
    kind: AccountKind
    user_id: str
    created_at: datetime
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    birthday: Optional[date] = None
    country_code: Optional[str] = None
    is_suspended: bool = False
    is_verified: bool = False
    business_name: Optional[str] = None
    business_type: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.kind is AccountKind.BUSINESS and self.business_name:
            return self.business_name
        parts = [part for part in (self.first_name, self.last_name) if part]
        return " ".join(parts).strip()


@dataclass(frozen=True)
class DataSignature:
    """Per-relation counts of records owned by an account."""

    contacts: int = 0
    funds: int = 0
    contributions: int = 0
    posts: int = 0
    orders: int = 0
    products: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "contacts": self.contacts,
            "funds": self.funds,
            "contributions": self.contributions,
            "posts": self.posts,
            "orders": self.orders,
            "products": self.products,
        }


@dataclass(frozen=True)
class EnrichedAccount:
    """Duplicate candidate with the signals used for ranking and display."""

    account: AccountSnapshot
    auth_methods: List[str]
    data_count: DataSignature
    last_active: Optional[datetime] = None
    degraded_signals: List[str] = field(default_factory=list)

    @property
    def account_id(self) -> str:
        return self.account.account_id

    @property
    def created_at(self) -> datetime:
        return self.account.created_at


@dataclass(frozen=True)
class DuplicateGroup:
    """Accounts believed to represent the same real-world entity."""

    kind: AccountKind
    confidence: MatchConfidence
    match_criteria: List[str]
    accounts: List[EnrichedAccount]
    recommended_primary: str

    def __post_init__(self) -> None:
        if len(self.accounts) < 2:
            raise ValueError("A duplicate group needs at least two accounts")
        if any(item.account.kind is not self.kind for item in self.accounts):
            raise ValueError("Duplicate groups cannot mix client and business accounts")
        if self.recommended_primary not in {item.account_id for item in self.accounts}:
            raise ValueError("Recommended primary must belong to the group")

    @property
    def account_ids(self) -> List[str]:
        return [item.account_id for item in self.accounts]


@dataclass(frozen=True)
class FindResult:
    """Outcome of a duplicate search."""

    message: str
    duplicates: List[DuplicateGroup]
    candidate_count: int


@dataclass(frozen=True)
class TransferLedgerEntry:
    """Outcome of reassigning one relation from secondary to primary."""

    table: str
    count: int
    success: bool
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "table": self.table,
            "count": self.count,
            "success": self.success,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class MergeResult:
    """Aggregated ledger of a merge attempt."""

    kind: AccountKind
    primary: AccountSnapshot
    secondary: AccountSnapshot
    transfer_details: List[TransferLedgerEntry]
    secondary_suspended: bool
    merged_by: str
    merged_at: datetime

    @property
    def success(self) -> bool:
        return self.secondary_suspended and all(entry.success for entry in self.transfer_details)

    @property
    def total_items_transferred(self) -> int:
        return sum(entry.count for entry in self.transfer_details if entry.success)

    @property
    def message(self) -> str:
        return "Accounts merged successfully" if self.success else "Merge completed with some errors"


__all__ = [
    "AccountKind",
    "AccountSnapshot",
    "DataSignature",
    "DuplicateGroup",
    "EnrichedAccount",
    "FindResult",
    "MatchConfidence",
    "MergeResult",
    "TransferLedgerEntry",
]
