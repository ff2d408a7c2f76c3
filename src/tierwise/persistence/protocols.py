"""Re-export persistence protocols from core for convenience."""

from __future__ import annotations

from tierwise.core.protocols import IAuditLog, ICacheBackend

__all__ = ["IAuditLog", "ICacheBackend"]
