"""Shared authentication enums."""
from __future__ import annotations

from enum import Enum


class AdminRole(str, Enum):
    """Administrative privilege tiers, highest first."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MODERATOR = "moderator"


__all__ = ["AdminRole"]
