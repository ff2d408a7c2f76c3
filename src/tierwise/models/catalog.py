"""Declarative specialist definitions loaded from a catalog document."""

from __future__ import annotations

import operator
from typing import Any, Callable, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tierwise.models.specialist import TierField

# Metrics every keyword specialist computes regardless of its definition.
BUILTIN_METRICS = ("domain_relevance", "prior_consultations")

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


class Rule(BaseModel):
    """``metric op value`` comparison against an analysis' metric table."""

    metric: str
    op: Literal[">", ">=", "<", "<=", "==", "!="]
    value: float

    def holds(self, metrics: Mapping[str, float]) -> bool:
        return _OPERATORS[self.op](metrics[self.metric], self.value)


class RuleSet(BaseModel):
    """Conjunction of ``all`` rules and disjunction of ``any`` rules.

    Both groups must hold when both are given. An empty rule set never holds.
    """

    model_config = ConfigDict(populate_by_name=True)

    all_of: list[Rule] = Field(default_factory=list, alias="all")
    any_of: list[Rule] = Field(default_factory=list, alias="any")

    def holds(self, metrics: Mapping[str, float]) -> bool:
        if not (self.all_of or self.any_of):
            return False
        if self.all_of and not all(r.holds(metrics) for r in self.all_of):
            return False
        if self.any_of and not any(r.holds(metrics) for r in self.any_of):
            return False
        return True

    @property
    def metrics(self) -> set[str]:
        return {r.metric for r in (*self.all_of, *self.any_of)}


class Level(BaseModel):
    name: str
    score: float
    keywords: list[str] = Field(default_factory=list)


class ContextModifier(BaseModel):
    """Adds ``add`` to a metric when a context value is set (or equals ``equals``)."""

    key: str
    add: float
    equals: Any = None

    def applies(self, values: Mapping[str, Any]) -> bool:
        value = values.get(self.key)
        if self.equals is None:
            return bool(value)
        return value == self.equals


class MetricDefinition(BaseModel):
    """How one numeric metric is measured from the task text.

    - ``level``: score of the first level whose keywords appear, else ``default``
    - ``count``: number of distinct keywords that appear
    - ``flag``: 1 if any keyword appears, else 0
    - ``groups``: number of named keyword groups with at least one hit
    - ``attribute``: numeric value of ``task.attributes[attribute]``
    """

    kind: Literal["level", "count", "flag", "groups", "attribute"]
    keywords: list[str] = Field(default_factory=list)
    levels: list[Level] = Field(default_factory=list)
    groups: dict[str, list[str]] = Field(default_factory=dict)
    attribute: Optional[str] = None
    default: float = 0.0
    default_level: str = "none"
    modifiers: list[ContextModifier] = Field(default_factory=list)
    cap: Optional[float] = None

    @model_validator(mode="after")
    def _check_kind(self) -> "MetricDefinition":
        if self.kind == "level" and not self.levels:
            raise ValueError("level metrics need at least one level")
        if self.kind in ("count", "flag") and not self.keywords:
            raise ValueError(f"{self.kind} metrics need keywords")
        if self.kind == "groups" and not self.groups:
            raise ValueError("groups metrics need keyword groups")
        if self.kind == "attribute" and not self.attribute:
            raise ValueError("attribute metrics need an attribute name")
        return self


class ApproachRule(BaseModel):
    name: str
    rationale: str
    steps: list[str] = Field(default_factory=list)
    when: Optional[RuleSet] = None  # None: fallback


class ConditionalCheck(BaseModel):
    check: str
    when: RuleSet


class TimelineBand(BaseModel):
    lower: float = Field(ge=0)
    upper: float = Field(ge=0)
    when: Optional[RuleSet] = None  # None: fallback


class ExtraDays(BaseModel):
    days: float
    factor: str
    when: RuleSet


class TimelineDefinition(BaseModel):
    bands: list[TimelineBand]
    extra_days: list[ExtraDays] = Field(default_factory=list)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _needs_fallback(self) -> "TimelineDefinition":
        if not any(b.when is None for b in self.bands):
            raise ValueError("timeline needs an unconditional band")
        return self


class CriterionDefinition(BaseModel):
    condition: str
    reason: str
    target_tier: TierField
    target_specialist_id: Optional[str] = None
    when: RuleSet


class SpecialistDefinition(BaseModel):
    """Everything a keyword specialist needs, as data."""

    id: str
    name: str
    domain: str
    tier: TierField
    expertise: list[str] = Field(default_factory=list)
    prerequisites: list[TierField] = Field(default_factory=list)
    max_complexity: float = 5.0
    metrics: dict[str, MetricDefinition] = Field(default_factory=dict)
    approaches: list[ApproachRule]
    quality_checks: list[str] = Field(default_factory=list)
    conditional_checks: list[ConditionalCheck] = Field(default_factory=list)
    timeline: TimelineDefinition
    handoff_criteria: list[CriterionDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_references(self) -> "SpecialistDefinition":
        if not any(a.when is None for a in self.approaches):
            raise ValueError(f"{self.id}: approaches need an unconditional fallback")

        known = set(self.metrics) | set(BUILTIN_METRICS)
        rule_sets = [
            *(a.when for a in self.approaches if a.when),
            *(c.when for c in self.conditional_checks),
            *(b.when for b in self.timeline.bands if b.when),
            *(e.when for e in self.timeline.extra_days),
            *(c.when for c in self.handoff_criteria),
        ]
        for rules in rule_sets:
            unknown = rules.metrics - known
            if unknown:
                raise ValueError(f"{self.id}: rules reference unknown metrics {sorted(unknown)}")
        return self


class RoutingDefinition(BaseModel):
    default_domain: Optional[str] = None
    patterns: dict[str, list[str]] = Field(default_factory=dict)


class CatalogDefinition(BaseModel):
    """Root of a catalog document."""

    version: int = 1
    routing: RoutingDefinition = Field(default_factory=RoutingDefinition)
    specialists: list[SpecialistDefinition]
