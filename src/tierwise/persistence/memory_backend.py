"""In-memory backends for local runs and unit tests, dict-backed."""

from __future__ import annotations

from typing import Optional

from tierwise.core.exceptions import AuditLogError
from tierwise.models.consultation import ConsolidatedResult


class MemoryAuditLog:
    """Dict-backed IAuditLog. Stores serialized results, append-only."""

    def __init__(self) -> None:
        self._results: dict[str, str] = {}

    def append(self, result: ConsolidatedResult) -> None:
        if result.request_id in self._results:
            raise AuditLogError(f"Result for request {result.request_id!r} already recorded")
        self._results[result.request_id] = result.model_dump_json()

    def get(self, request_id: str) -> Optional[ConsolidatedResult]:
        raw = self._results.get(request_id)
        return ConsolidatedResult.model_validate_json(raw) if raw is not None else None

    def __len__(self) -> int:
        return len(self._results)


class MemoryCacheBackend:
    """Dict-backed ICacheBackend. TTLs are accepted and ignored."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)
