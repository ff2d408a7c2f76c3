"""Tests for in-memory backends and the persistence factory."""

from __future__ import annotations

from unittest.mock import patch

import fakeredis
import pytest
from moto import mock_aws

from tierwise.core.config import AppSettings, AuditConfig, CacheConfig
from tierwise.core.exceptions import AuditLogError
from tierwise.core.protocols import IAuditLog, ICacheBackend
from tierwise.persistence import create_persistence
from tierwise.persistence.dynamodb_backend import DynamoDBAuditLog
from tierwise.persistence.memory_backend import MemoryAuditLog, MemoryCacheBackend
from tierwise.persistence.redis_backend import RedisCacheBackend
from tierwise.persistence.s3_backend import S3AuditLog
from tests.fakes import make_result


class TestMemoryAuditLog:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryAuditLog(), IAuditLog)

    def test_append_and_get(self, result):
        log = MemoryAuditLog()
        log.append(result)
        assert log.get("req-1").task_id == "task-1"
        assert len(log) == 1

    def test_get_returns_a_copy(self, result):
        log = MemoryAuditLog()
        log.append(result)
        assert log.get("req-1") is not result

    def test_duplicate_append_raises(self, result):
        log = MemoryAuditLog()
        log.append(result)
        with pytest.raises(AuditLogError):
            log.append(make_result("req-1"))

    def test_unknown_request_is_none(self):
        assert MemoryAuditLog().get("nope") is None


class TestMemoryCacheBackend:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryCacheBackend(), ICacheBackend)

    def test_set_get_delete(self):
        cache = MemoryCacheBackend()
        cache.setex("k", 10, "v")
        assert cache.get("k") == "v"
        cache.delete("k")
        assert cache.get("k") is None


class TestCreatePersistence:
    def test_defaults_to_memory_without_cache(self):
        audit_log, cache = create_persistence(AppSettings())
        assert isinstance(audit_log, MemoryAuditLog)
        assert cache is None

    def test_s3_backend(self):
        settings = AppSettings(audit=AuditConfig(backend="s3"))
        with mock_aws():
            audit_log, _ = create_persistence(settings)
        assert isinstance(audit_log, S3AuditLog)

    def test_dynamodb_backend(self):
        settings = AppSettings(audit=AuditConfig(backend="dynamodb"))
        with mock_aws():
            audit_log, _ = create_persistence(settings)
        assert isinstance(audit_log, DynamoDBAuditLog)

    def test_enabled_cache_uses_redis(self):
        settings = AppSettings(cache=CacheConfig(enabled=True))
        with patch("redis.Redis", return_value=fakeredis.FakeRedis(decode_responses=True)):
            _, cache = create_persistence(settings)
        assert isinstance(cache, RedisCacheBackend)
