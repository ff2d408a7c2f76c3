"""Shared test doubles: scripted specialists and re-exported memory backends."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Sequence

from tierwise.models.consultation import (
    ConsolidatedResult,
    ConsultationRecord,
    Recommendation,
    TerminationReason,
    Timeline,
)
from tierwise.models.specialist import HandoffCriterion, SpecialistDescriptor, Tier
from tierwise.models.task import Context, Task
from tierwise.persistence.memory_backend import MemoryAuditLog, MemoryCacheBackend

__all__ = [
    "FakeSpecialist",
    "MemoryAuditLog",
    "MemoryCacheBackend",
    "always",
    "criterion",
    "make_result",
    "never",
]


def always(analysis: Any, task: Task) -> bool:
    return True


def never(analysis: Any, task: Task) -> bool:
    return False


def criterion(
    condition: str,
    target_tier: Tier | int,
    when: Callable[[Any, Task], bool] = always,
    *,
    target: Optional[str] = None,
    reason: str = "",
) -> HandoffCriterion:
    return HandoffCriterion(
        condition=condition,
        reason=reason or f"{condition} fired",
        target_tier=target_tier,
        target_specialist_id=target,
        predicate=when,
    )


class FakeSpecialist:
    """Scripted ISpecialist.

    ``fail_analyze`` / ``fail_recommend`` are raised from the matching stage;
    ``delay`` makes ``analyze`` sleep first (for timeout and cancellation
    tests). Every stage call is appended to ``calls``.
    """

    def __init__(
        self,
        specialist_id: str,
        domain: str,
        tier: Tier | int,
        *,
        criteria: Sequence[HandoffCriterion] = (),
        prerequisites: Sequence[Tier | int] = (),
        checks: Sequence[str] = (),
        days: tuple[float, float] = (1, 2),
        confidence: float = 0.8,
        fail_analyze: Optional[BaseException] = None,
        fail_recommend: Optional[BaseException] = None,
        delay: float = 0.0,
        max_complexity: float = 5.0,
    ) -> None:
        self._descriptor = SpecialistDescriptor(
            id=specialist_id,
            name=specialist_id.replace("-", " ").title(),
            domain=domain,
            tier=tier,
            prerequisites=tuple(prerequisites),
            handoff_criteria=tuple(criteria),
        )
        self._checks = list(checks) or [f"{specialist_id}-review"]
        self._days = days
        self._confidence = confidence
        self._fail_analyze = fail_analyze
        self._fail_recommend = fail_recommend
        self._delay = delay
        self._max_complexity = max_complexity
        self.calls: list[str] = []

    @property
    def descriptor(self) -> SpecialistDescriptor:
        return self._descriptor

    async def analyze(self, task: Task, context: Context) -> dict[str, Any]:
        self.calls.append("analyze")
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail_analyze is not None:
            raise self._fail_analyze
        return {
            "specialist": self._descriptor.id,
            "prior": [r.specialist_id for r in context.prior],
        }

    async def generate_recommendations(
        self, analysis: Any, task: Task, context: Context
    ) -> Recommendation:
        self.calls.append("recommend")
        if self._fail_recommend is not None:
            raise self._fail_recommend
        return Recommendation(
            summary=f"advice from {self._descriptor.id}",
            payload={"analysis": analysis},
            quality_checks=self._checks,
            timeline=Timeline(
                lower_bound=self._days[0],
                upper_bound=self._days[1],
                confidence=self._confidence,
            ),
        )

    def evaluate_handoff_criterion(
        self, criterion: HandoffCriterion, analysis: Any, task: Task
    ) -> bool:
        self.calls.append(f"handoff:{criterion.condition}")
        return bool(criterion.predicate(analysis, task)) if criterion.predicate else False

    def get_max_complexity_handled(self) -> float:
        return self._max_complexity


def make_result(request_id: str = "req-1", domain: str = "security") -> ConsolidatedResult:
    """A small finished single-tier result for persistence tests."""
    recommendation = Recommendation(
        summary="baseline-security: low exposure",
        quality_checks=["security-review"],
        timeline=Timeline(lower_bound=1, upper_bound=3, confidence=0.75),
    )
    record = ConsultationRecord(
        specialist_id="security-generalist",
        domain=domain,
        tier=Tier.TIER_1,
        analysis={"metrics": {"threat_level": 2.0}},
        recommendation=recommendation,
    )
    return ConsolidatedResult(
        request_id=request_id,
        task_id="task-1",
        domain=domain,
        chain=[record],
        quality_checks=["security-review"],
        final_recommendation=recommendation,
        overall_timeline=recommendation.timeline,
        overall_confidence=0.75,
        termination=TerminationReason.NO_HANDOFF,
    )
