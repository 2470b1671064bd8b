"""Append-only merge ledger and admin audit trail."""

from backend.app.audit.writer import AuditWriter

__all__ = ["AuditWriter"]
