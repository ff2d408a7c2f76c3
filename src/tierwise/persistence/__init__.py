"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from tierwise.core.config import AppSettings
from tierwise.persistence.dynamodb_backend import DynamoDBAuditLog
from tierwise.persistence.memory_backend import MemoryAuditLog
from tierwise.persistence.protocols import IAuditLog, ICacheBackend
from tierwise.persistence.redis_backend import RedisCacheBackend
from tierwise.persistence.s3_backend import S3AuditLog


def create_persistence(
    settings: AppSettings | None = None,
) -> tuple[IAuditLog, ICacheBackend | None]:
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (audit_log, cache). ``cache`` is None unless caching is enabled.
    """
    if settings is None:
        settings = AppSettings()

    audit_log: IAuditLog
    if settings.audit.backend == "s3":
        audit_log = S3AuditLog(
            bucket=settings.s3.bucket,
            prefix=settings.audit.key_prefix,
            region=settings.s3.region,
            endpoint_url=settings.s3.endpoint_url,
        )
    elif settings.audit.backend == "dynamodb":
        audit_log = DynamoDBAuditLog(
            table_name=settings.dynamodb.table_name,
            table_suffix=settings.dynamodb.table_suffix,
            region=settings.dynamodb.region,
            endpoint_url=settings.dynamodb.endpoint_url,
        )
    else:
        audit_log = MemoryAuditLog()

    cache: ICacheBackend | None = None
    if settings.cache.enabled:
        cache = RedisCacheBackend(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
        )

    return audit_log, cache
