"""ConsultationService: engine plus result cache and audit log."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Optional
from uuid import uuid4

from tierwise.core.exceptions import AuditLogError, CacheError
from tierwise.models.consultation import ConsolidatedResult
from tierwise.models.task import Context, Task
from tierwise.orchestration.escalation import EscalationEngine
from tierwise.persistence.protocols import IAuditLog, ICacheBackend

logger = logging.getLogger(__name__)


def cache_key(task: Task, context: Context, domain: Optional[str] = None) -> str:
    """Stable key for a request: task text, attributes, context values and domain override."""
    material: dict[str, Any] = {
        "domain": domain,
        "description": task.description,
        "attributes": task.attributes,
        "context": context.values,
    }
    digest = hashlib.sha256(
        json.dumps(material, sort_keys=True, default=str).encode("utf-8")
    ).hexdigest()
    return f"consultation:{digest}"


class ConsultationService:
    """Front door used by the API: cache lookup, consult, audit, cache fill."""

    def __init__(
        self,
        engine: EscalationEngine,
        audit_log: IAuditLog,
        cache: Optional[ICacheBackend] = None,
        *,
        cache_ttl: int = 900,
    ) -> None:
        self._engine = engine
        self._audit_log = audit_log
        self._cache = cache
        self._cache_ttl = cache_ttl

    @property
    def engine(self) -> EscalationEngine:
        return self._engine

    async def consult(
        self,
        task: Task,
        context: Optional[Context] = None,
        *,
        domain: Optional[str] = None,
    ) -> ConsolidatedResult:
        context = context or Context()
        key = cache_key(task, context, domain) if self._cache is not None else None

        if key is not None:
            cached = self._cache_get(key)
            if cached is not None:
                # Each request gets its own identity and audit entry.
                result = cached.model_copy(
                    update={"task_id": task.id, "request_id": uuid4().hex}
                )
                logger.info(
                    "Cache hit for task %s -> request %s (from %s)",
                    task.id,
                    result.request_id,
                    cached.request_id,
                )
                self._audit(result)
                return result

        result = await self._engine.consult(task, context, domain=domain)
        self._audit(result)

        if key is not None:
            self._cache_set(key, result)
        return result

    def history(self, request_id: str) -> Optional[ConsolidatedResult]:
        try:
            return self._audit_log.get(request_id)
        except AuditLogError:
            logger.exception("Audit read failed for request %s", request_id)
            raise

    def _audit(self, result: ConsolidatedResult) -> None:
        try:
            self._audit_log.append(result)
        except AuditLogError:
            logger.exception("Audit append failed for request %s", result.request_id)
            raise

    def _cache_get(self, key: str) -> Optional[ConsolidatedResult]:
        try:
            raw = self._cache.get(key)
        except CacheError:
            logger.exception("Cache read failed for %s", key)
            raise
        return ConsolidatedResult.model_validate_json(raw) if raw else None

    def _cache_set(self, key: str, result: ConsolidatedResult) -> None:
        try:
            self._cache.setex(key, self._cache_ttl, result.model_dump_json())
        except CacheError:
            logger.exception("Cache write failed for %s", key)
            raise
