"""Consultation records, the per-request chain, and the consolidated result."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tierwise.core.exceptions import ChainInvariantError
from tierwise.models.specialist import HandoffCriterion, Tier, TierField


class ConsultationStatus(StrEnum):
    OK = "OK"
    DEGRADED = "DEGRADED"


class TerminationReason(StrEnum):
    NO_HANDOFF = "no-handoff"
    EXHAUSTED = "exhausted"
    ESCALATION_UNAVAILABLE = "escalation-unavailable"
    STAGE_FAILED = "stage-failed"
    HANDOFF_EVALUATION_FAILED = "handoff-evaluation-failed"
    CANCELLED = "cancelled"
    TIER_LIMIT = "tier-limit"


class Timeline(BaseModel):
    """Effort estimate in days with the estimating specialist's confidence."""

    lower_bound: float = Field(ge=0)
    upper_bound: float = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)
    unit: str = "days"
    factors: list[str] = Field(default_factory=list)
    prior_estimates: list[Timeline] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_bounds(self) -> "Timeline":
        if self.upper_bound < self.lower_bound:
            raise ValueError(
                f"upper_bound {self.upper_bound} is below lower_bound {self.lower_bound}"
            )
        return self

    @property
    def estimate(self) -> str:
        return f"{self.lower_bound:g}-{self.upper_bound:g} {self.unit}"


class Recommendation(BaseModel):
    """Domain payload plus the fields every specialist must supply."""

    summary: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    quality_checks: list[str] = Field(default_factory=list)
    timeline: Timeline

    @field_validator("quality_checks")
    @classmethod
    def _ordered_set(cls, checks: list[str]) -> list[str]:
        return list(dict.fromkeys(checks))


class StageFailure(BaseModel):
    """Attribution of a failed stage to the specialist that produced it."""

    specialist_id: str
    tier: TierField
    stage: str  # analyze, recommend, handoff
    error_type: str
    message: str


class ConsultationRecord(BaseModel):
    """One specialist visit in a consultation chain."""

    model_config = ConfigDict(frozen=True)

    specialist_id: str
    specialist_name: str = ""
    domain: str
    tier: TierField
    analysis: Any = None
    recommendation: Optional[Recommendation] = None
    status: ConsultationStatus = ConsultationStatus.OK
    triggered_handoff: Optional[HandoffCriterion] = None
    max_complexity_handled: Optional[float] = None  # advisory only
    prerequisite_for: Optional[str] = None  # set when inserted ahead of an escalation target
    failure: Optional[StageFailure] = None

    @property
    def degraded(self) -> bool:
        return self.status == ConsultationStatus.DEGRADED


class ConsultationChain:
    """Append-only, request-owned sequence of consultation records.

    Enforces non-decreasing tiers, one record per tier, and the length bound
    on every append.
    """

    def __init__(self, request_id: str, max_length: int = len(Tier)) -> None:
        self.request_id = request_id
        self.max_length = max_length
        self._records: list[ConsultationRecord] = []

    def append(self, record: ConsultationRecord) -> None:
        if len(self._records) >= self.max_length:
            raise ChainInvariantError(
                f"Chain {self.request_id} already holds {self.max_length} records"
            )
        if self.has_tier(record.tier):
            raise ChainInvariantError(f"Tier {record.tier.name} already consulted in {self.request_id}")
        if self._records and record.tier < self._records[-1].tier:
            raise ChainInvariantError(
                f"Tier {record.tier.name} would follow {self._records[-1].tier.name} in {self.request_id}"
            )
        self._records.append(record)

    def has_tier(self, tier: Tier) -> bool:
        return any(r.tier == tier for r in self._records)

    def tiers(self) -> list[Tier]:
        return [r.tier for r in self._records]

    @property
    def records(self) -> tuple[ConsultationRecord, ...]:
        return tuple(self._records)

    @property
    def last(self) -> Optional[ConsultationRecord]:
        return self._records[-1] if self._records else None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ConsultationRecord]:
        return iter(tuple(self._records))


class HandoffEvent(BaseModel):
    """An escalation that occurred: who handed off to whom, and why."""

    from_specialist_id: str
    from_tier: TierField
    to_specialist_id: str
    to_tier: TierField
    condition: str
    reason: str
    inserted_prerequisites: list[str] = Field(default_factory=list)


class ConsolidatedResult(BaseModel):
    """Explainable answer folded from a finished consultation chain."""

    request_id: str
    task_id: str
    domain: str
    chain: list[ConsultationRecord] = Field(default_factory=list)
    quality_checks: list[str] = Field(default_factory=list)
    final_recommendation: Optional[Recommendation] = None
    overall_timeline: Optional[Timeline] = None
    overall_confidence: Optional[float] = None
    handoff_trail: list[HandoffEvent] = Field(default_factory=list)
    termination: TerminationReason
    failures: list[StageFailure] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return any(r.degraded for r in self.chain)

    @property
    def final_tier(self) -> Optional[Tier]:
        return self.chain[-1].tier if self.chain else None
