"""Error taxonomy raised by the deduplication and merge services."""
from __future__ import annotations


class DedupeServiceError(RuntimeError):
    """Base error carrying the reason used to pick an HTTP status."""

    reason = "bad_request"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidRequestError(DedupeServiceError):
    """Malformed or missing input, including self-merges."""

    reason = "bad_request"


class ForbiddenError(DedupeServiceError):
    """Insufficient role or an account outside the caller's country scope."""

    reason = "forbidden"


class NotFoundError(DedupeServiceError):
    """A referenced account does not exist."""

    reason = "not_found"


class MergeConflictError(DedupeServiceError):
    """Another merge currently holds the secondary account."""

    reason = "conflict"


class InternalEngineError(DedupeServiceError):
    """Unexpected backing-store fault."""

    reason = "internal"


__all__ = [
    "DedupeServiceError",
    "ForbiddenError",
    "InternalEngineError",
    "InvalidRequestError",
    "MergeConflictError",
    "NotFoundError",
]
