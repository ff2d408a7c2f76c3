"""KeywordSpecialist: a specialist whose analysis is driven by a definition.

Analysis scans the lower-cased task description for keyword sets and turns
each configured metric into a number. Recommendation, timeline and handoff
rules are then plain comparisons over that metric table, so the whole
specialist is data and stays stateless between calls.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from tierwise.core.exceptions import AnalysisError, RecommendationError
from tierwise.models.catalog import MetricDefinition, RuleSet, SpecialistDefinition
from tierwise.models.consultation import Recommendation, Timeline
from tierwise.models.specialist import HandoffCriterion, SpecialistDescriptor
from tierwise.models.task import Context, Task

logger = logging.getLogger(__name__)


class KeywordAnalysis(BaseModel):
    """Output of ``KeywordSpecialist.analyze``."""

    specialist_id: str
    metrics: dict[str, float] = Field(default_factory=dict)
    levels: dict[str, str] = Field(default_factory=dict)
    matches: dict[str, list[str]] = Field(default_factory=dict)
    matched_expertise: list[str] = Field(default_factory=list)
    domain_relevance: float = 0.0
    prior_findings: list[str] = Field(default_factory=list)


def measure(
    definition: MetricDefinition, text: str, task: Task, context: Context
) -> tuple[float, Optional[str], list[str]]:
    """Return ``(value, level name, matched keywords)`` for one metric."""
    level: Optional[str] = None
    matched: list[str] = []

    if definition.kind == "level":
        value, level = definition.default, definition.default_level
        for candidate in definition.levels:
            hits = [k for k in candidate.keywords if k in text]
            if hits:
                value, level, matched = candidate.score, candidate.name, hits
                break
    elif definition.kind == "count":
        matched = [k for k in dict.fromkeys(definition.keywords) if k in text]
        value = float(len(matched))
    elif definition.kind == "flag":
        matched = [k for k in definition.keywords if k in text]
        value = 1.0 if matched else 0.0
    elif definition.kind == "groups":
        matched = [
            name for name, keywords in definition.groups.items() if any(k in text for k in keywords)
        ]
        value = float(len(matched))
    else:
        raw = task.attributes.get(definition.attribute, definition.default)
        if isinstance(raw, bool):
            raw = int(raw)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"attribute {definition.attribute!r} is not numeric: {raw!r}") from None

    for modifier in definition.modifiers:
        if modifier.applies(context.values):
            value += modifier.add
    if definition.cap is not None:
        value = min(value, definition.cap)
    return value, level, matched


class KeywordSpecialist:
    """ISpecialist implementation backed by a ``SpecialistDefinition``."""

    def __init__(self, definition: SpecialistDefinition) -> None:
        self._definition = definition
        self._descriptor = SpecialistDescriptor(
            id=definition.id,
            name=definition.name,
            domain=definition.domain,
            tier=definition.tier,
            expertise=definition.expertise,
            prerequisites=definition.prerequisites,
            handoff_criteria=tuple(
                HandoffCriterion(
                    condition=c.condition,
                    reason=c.reason,
                    target_tier=c.target_tier,
                    target_specialist_id=c.target_specialist_id,
                    predicate=_rule_predicate(c.when),
                )
                for c in definition.handoff_criteria
            ),
        )

    @property
    def descriptor(self) -> SpecialistDescriptor:
        return self._descriptor

    @property
    def definition(self) -> SpecialistDefinition:
        return self._definition

    async def analyze(self, task: Task, context: Context) -> KeywordAnalysis:
        if not task.description.strip():
            raise AnalysisError(self._definition.id, self._definition.tier, "task description is empty")

        text = task.text
        metrics: dict[str, float] = {}
        levels: dict[str, str] = {}
        matches: dict[str, list[str]] = {}
        for name, metric in self._definition.metrics.items():
            try:
                value, level, matched = measure(metric, text, task, context)
            except ValueError as exc:
                raise AnalysisError(self._definition.id, self._definition.tier, str(exc)) from exc
            metrics[name] = value
            if level is not None:
                levels[name] = level
            if matched:
                matches[name] = matched

        expertise = self._definition.expertise
        matched_expertise = [e for e in expertise if e.lower() in text]
        relevance = len(matched_expertise) / len(expertise) if expertise else 0.0
        metrics["domain_relevance"] = relevance
        metrics["prior_consultations"] = float(len(context.prior))
        logger.debug("%s metrics: %s", self._definition.id, metrics)

        return KeywordAnalysis(
            specialist_id=self._definition.id,
            metrics=metrics,
            levels=levels,
            matches=matches,
            matched_expertise=matched_expertise,
            domain_relevance=relevance,
            prior_findings=[r.specialist_id for r in context.prior],
        )

    async def generate_recommendations(
        self, analysis: Any, task: Task, context: Context
    ) -> Recommendation:
        if not isinstance(analysis, KeywordAnalysis) or analysis.specialist_id != self._definition.id:
            raise RecommendationError(
                self._definition.id,
                self._definition.tier,
                "analysis was not produced by this specialist",
            )
        metrics = analysis.metrics
        approach = next(
            a for a in self._definition.approaches if a.when is None or a.when.holds(metrics)
        )
        checks = list(self._definition.quality_checks)
        checks.extend(c.check for c in self._definition.conditional_checks if c.when.holds(metrics))

        return Recommendation(
            summary=f"{approach.name}: {approach.rationale}",
            payload={
                "approach": approach.name,
                "rationale": approach.rationale,
                "steps": list(approach.steps),
                "metrics": dict(metrics),
                "levels": dict(analysis.levels),
                "prior_findings": list(analysis.prior_findings),
            },
            quality_checks=checks,
            timeline=self._timeline(analysis),
        )

    def _timeline(self, analysis: KeywordAnalysis) -> Timeline:
        definition = self._definition.timeline
        metrics = analysis.metrics
        band = next(b for b in definition.bands if b.when is None or b.when.holds(metrics))
        lower, upper = band.lower, band.upper

        factors = [
            f"{name}: {analysis.levels.get(name, f'{metrics[name]:g}')}"
            for name in self._definition.metrics
        ]
        for extra in definition.extra_days:
            if extra.when.holds(metrics):
                lower += extra.days
                upper += extra.days
                factors.append(f"+{extra.days:g} days: {extra.factor}")

        return Timeline(
            lower_bound=lower,
            upper_bound=upper,
            confidence=definition.confidence,
            factors=factors,
        )

    def evaluate_handoff_criterion(
        self, criterion: HandoffCriterion, analysis: Any, task: Task
    ) -> bool:
        if criterion.predicate is None:
            return False
        return bool(criterion.predicate(analysis, task))

    def get_max_complexity_handled(self) -> float:
        return self._definition.max_complexity

    def __repr__(self) -> str:
        return f"KeywordSpecialist({self._definition.id!r}, {self._definition.tier.name})"


def _rule_predicate(rules: RuleSet):
    def predicate(analysis: KeywordAnalysis, task: Task) -> bool:
        return rules.holds(analysis.metrics)

    return predicate
