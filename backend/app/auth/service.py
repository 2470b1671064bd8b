"""Service layer resolving bearer credentials into administrator contexts."""
from __future__ import annotations

import logging

from backend.app.auth.repository import AuthRepository
from backend.app.auth.schemas import AdminContext
from backend.app.auth.utils import JWTError, JWTManager

LOGGER = logging.getLogger(__name__)


class AuthServiceError(RuntimeError):
    """Raised when authentication operations fail."""

    def __init__(self, message: str, reason: str = "bad_request") -> None:
        super().__init__(message)
        self.reason = reason


class AuthService:
    """Coordinate token decoding and administrator lookup."""

    def __init__(self, repository: AuthRepository, jwt_manager: JWTManager) -> None:
        self._repository = repository
        self._jwt_manager = jwt_manager

    async def authenticate(self, token: str) -> AdminContext:
        """Validate a bearer token and load the associated administrator.

        Raises:
            AuthServiceError: ``unauthorized`` when the token is invalid,
                ``forbidden`` when the user holds no active admin entry.
        """

        try:
            payload = self._jwt_manager.decode(token)
        except JWTError as exc:
            raise AuthServiceError("Invalid or expired token", reason="unauthorized") from exc

        subject = payload.get("sub")
        if not subject:
            raise AuthServiceError("Invalid or expired token", reason="unauthorized")

        admin = await self._repository.get_active_admin(subject)
        if admin is None:
            LOGGER.warning("Rejected non-admin caller", extra={"user_id": subject})
            raise AuthServiceError("Admin access required", reason="forbidden")
        return AdminContext(
            user_id=admin.user_id,
            role=admin.role,
            is_active=admin.is_active,
            assigned_countries=list(admin.assigned_countries or []),
        )
