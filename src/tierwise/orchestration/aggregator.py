"""Result aggregation: folds a finished chain into one ConsolidatedResult."""

from __future__ import annotations

from typing import Iterable

from tierwise.models.consultation import (
    ConsolidatedResult,
    ConsultationChain,
    HandoffEvent,
    StageFailure,
    TerminationReason,
    Timeline,
)


def aggregate(
    chain: ConsultationChain,
    *,
    task_id: str,
    domain: str,
    termination: TerminationReason,
    handoff_trail: Iterable[HandoffEvent] = (),
    failures: Iterable[StageFailure] = (),
) -> ConsolidatedResult:
    """Consolidate a chain.

    Earlier records are kept as-is; later tiers add context rather than
    replacing findings. The last record that produced a recommendation is
    authoritative, and confidence is the weakest link across the chain.
    """
    records = chain.records
    recommendations = [r.recommendation for r in records if r.recommendation is not None]

    quality_checks: list[str] = []
    for rec in recommendations:
        for check in rec.quality_checks:
            if check not in quality_checks:
                quality_checks.append(check)

    final = recommendations[-1] if recommendations else None

    overall_timeline: Timeline | None = None
    if final is not None:
        overall_timeline = final.timeline.model_copy(
            update={"prior_estimates": [r.timeline for r in recommendations[:-1]]}
        )

    overall_confidence = (
        min(r.timeline.confidence for r in recommendations) if recommendations else None
    )

    return ConsolidatedResult(
        request_id=chain.request_id,
        task_id=task_id,
        domain=domain,
        chain=list(records),
        quality_checks=quality_checks,
        final_recommendation=final,
        overall_timeline=overall_timeline,
        overall_confidence=overall_confidence,
        handoff_trail=list(handoff_trail),
        termination=termination,
        failures=list(failures),
    )
