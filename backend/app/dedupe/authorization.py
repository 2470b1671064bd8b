"""Privilege and country-scope checks guarding account merges."""
from __future__ import annotations

import logging
from typing import Optional

from backend.app.audit.writer import AuditWriter
from backend.app.auth.enums import AdminRole
from backend.app.auth.schemas import AdminContext
from backend.app.dedupe.errors import ForbiddenError
from backend.app.dedupe.models import AccountSnapshot

LOGGER = logging.getLogger(__name__)


class AuthorizationGate:
    """Verify that an admin may operate on a pair of accounts."""

    def __init__(self, audit_writer: AuditWriter, required_role: AdminRole = AdminRole.SUPER_ADMIN) -> None:
        self._audit_writer = audit_writer
        self._required_role = required_role

    def require_privilege(
        self,
        admin: AdminContext,
        message: str = "Super admin privileges required for account merging",
    ) -> None:
        """Reject callers below the privilege level needed for merges."""

        if not admin.is_active or admin.role is not self._required_role:
            LOGGER.warning(
                "Rejected caller without merge privilege",
                extra={"admin_user_id": admin.user_id, "role": admin.role.value},
            )
            raise ForbiddenError(message)

    async def authorize_merge(
        self, admin: AdminContext, primary: AccountSnapshot, secondary: AccountSnapshot
    ) -> None:
        """Check privilege and country scope for both merge participants.

        An out-of-scope account produces an ``unauthorized_country_access``
        audit entry before the request is rejected.
        """

        self.require_privilege(admin)
        blocked = self._blocked_account(admin, primary, secondary)
        if blocked is None:
            return

        LOGGER.error(
            "Admin %s attempted merge with account from restricted country: %s",
            admin.user_id,
            blocked.country_code,
        )
        await self._audit_writer.record_unauthorized_country_access(
            admin=admin,
            blocked=blocked,
            primary=primary,
            secondary=secondary,
        )
        raise ForbiddenError(f"Forbidden - Access denied for country: {blocked.country_code}")

    @staticmethod
    def _blocked_account(
        admin: AdminContext, primary: AccountSnapshot, secondary: AccountSnapshot
    ) -> Optional[AccountSnapshot]:
        for account in (primary, secondary):
            if not admin.can_access_country(account.country_code):
                return account
        return None


__all__ = ["AuthorizationGate"]
