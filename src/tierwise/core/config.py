"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Escalation engine configuration."""

    model_config = {"env_prefix": "TIERWISE_ENGINE_"}

    stage_timeout_seconds: Optional[float] = 30.0  # None disables per-stage timeouts
    max_concurrency: int = 8
    catalog_path: Optional[str] = None  # None loads the packaged reference catalog
    default_domain: Optional[str] = None  # overrides the catalog's routing default
    strict_targets: bool = True  # False tolerates handoffs to unregistered specialists


class AuditConfig(BaseSettings):
    """Consultation audit log configuration."""

    model_config = {"env_prefix": "TIERWISE_AUDIT_"}

    backend: Literal["memory", "s3", "dynamodb"] = "memory"
    key_prefix: str = "consultations/"


class CacheConfig(BaseSettings):
    """Result cache configuration."""

    model_config = {"env_prefix": "TIERWISE_CACHE_"}

    enabled: bool = False
    ttl_seconds: int = 900


class RedisConfig(BaseSettings):
    """Redis cache configuration."""

    model_config = {"env_prefix": "TIERWISE_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0


class S3Config(BaseSettings):
    """S3 audit archive configuration."""

    model_config = {"env_prefix": "TIERWISE_S3_"}

    bucket: str = "tierwise-consultations"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class DynamoDBConfig(BaseSettings):
    """DynamoDB audit table configuration."""

    model_config = {"env_prefix": "TIERWISE_DYNAMO_"}

    table_name: str = "tierwise-consultation-audit"
    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "TIERWISE_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    engine: EngineConfig = EngineConfig()
    audit: AuditConfig = AuditConfig()
    cache: CacheConfig = CacheConfig()
    redis: RedisConfig = RedisConfig()
    s3: S3Config = S3Config()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
