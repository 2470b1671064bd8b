"""Pydantic schemas for authenticated administrators."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from backend.app.auth.enums import AdminRole


class _FrozenModel(BaseModel):
    """Base immutable schema."""

    model_config = ConfigDict(frozen=True)


class AdminContext(_FrozenModel):
    """Caller privilege and country scope passed explicitly to the engine.

    An empty ``assigned_countries`` list means the caller is not restricted
    to any country.
    """

    user_id: str = Field(..., min_length=1)
    role: AdminRole
    is_active: bool = True
    assigned_countries: List[str] = Field(default_factory=list)

    @property
    def is_country_scoped(self) -> bool:
        """Return whether the caller is limited to a list of countries."""

        return bool(self.assigned_countries)

    def can_access_country(self, country_code: str | None) -> bool:
        """Return whether an account registered in ``country_code`` is in scope."""

        if not country_code or not self.is_country_scoped:
            return True
        return country_code.upper() in {code.upper() for code in self.assigned_countries}


__all__ = ["AdminContext"]
