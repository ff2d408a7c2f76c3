"""Tierwise exception hierarchy."""

from __future__ import annotations


class TierwiseError(Exception):
    """Base exception for all Tierwise errors."""


class ConfigError(TierwiseError):
    """Invalid registry or catalog wiring. Raised at startup only."""


class UnknownDomainError(TierwiseError):
    """No entry specialist is registered for the routed domain."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(f"No TIER_1 specialist registered for domain {domain!r}")


class ChainInvariantError(TierwiseError):
    """Appending a record would break the consultation chain invariants."""


class SpecialistStageError(TierwiseError):
    """A specialist stage failed. Recovered by the engine as a DEGRADED record."""

    stage = "unknown"

    def __init__(self, specialist_id: str, tier: int, message: str) -> None:
        self.specialist_id = specialist_id
        self.tier = tier
        super().__init__(f"{self.stage} failed for {specialist_id} (tier {tier}): {message}")


class AnalysisError(SpecialistStageError):
    """`analyze` raised or rejected its input."""

    stage = "analyze"


class RecommendationError(SpecialistStageError):
    """`generate_recommendations` raised."""

    stage = "recommend"


class HandoffEvaluationError(SpecialistStageError):
    """A handoff predicate raised instead of returning a bool."""

    stage = "handoff"


class StageTimeoutError(SpecialistStageError):
    """A stage exceeded the per-stage timeout."""

    def __init__(self, specialist_id: str, tier: int, stage: str, timeout: float) -> None:
        self.stage = stage
        self.timeout = timeout
        super().__init__(specialist_id, tier, f"timed out after {timeout:g}s")


class HandoffTargetUnavailable(TierwiseError):
    """A criterion matched but its target cannot be consulted."""

    def __init__(self, condition: str, target: str, reason: str) -> None:
        self.condition = condition
        self.target = target
        self.reason = reason
        super().__init__(f"Handoff {condition!r} to {target} unavailable: {reason}")


class AuditLogError(TierwiseError):
    """Audit log read or append failed."""


class CacheError(TierwiseError):
    """Redis cache operation failed."""
