"""Authentication package resolving bearer tokens into admin contexts."""

from backend.app.auth.schemas import AdminContext
from backend.app.auth.service import AuthService
from backend.app.auth.utils import JWTManager

__all__ = ["AdminContext", "AuthService", "JWTManager"]
