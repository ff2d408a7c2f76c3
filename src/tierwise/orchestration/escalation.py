"""EscalationEngine: drives one task through the specialist tiers.

States: START -> CONSULTING -> (ESCALATE_PENDING -> CONSULTING)* -> TERMINATED.

Each request owns its chain; nothing here is shared between requests, so
any number of ``consult`` calls may run concurrently on one engine.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Awaitable, Callable, Iterable, Optional
from uuid import uuid4

from tierwise.core.exceptions import (
    AnalysisError,
    HandoffEvaluationError,
    HandoffTargetUnavailable,
    RecommendationError,
    SpecialistStageError,
    StageTimeoutError,
)
from tierwise.models.consultation import (
    ConsolidatedResult,
    ConsultationChain,
    ConsultationRecord,
    ConsultationStatus,
    HandoffEvent,
    StageFailure,
    TerminationReason,
)
from tierwise.models.specialist import HandoffCriterion, SpecialistDescriptor
from tierwise.models.task import Context, Task
from tierwise.orchestration.aggregator import aggregate
from tierwise.orchestration.protocols import DomainClassifier, ISpecialist
from tierwise.orchestration.registry import SpecialistRegistry

logger = logging.getLogger(__name__)


class EngineState(StrEnum):
    START = "START"
    CONSULTING = "CONSULTING"
    ESCALATE_PENDING = "ESCALATE_PENDING"
    TERMINATED = "TERMINATED"


@dataclass
class _Run:
    """Mutable bookkeeping for one in-flight request."""

    request_id: str
    task: Task
    context: Context
    domain: str
    chain: ConsultationChain
    trail: list[HandoffEvent] = field(default_factory=list)
    failures: list[StageFailure] = field(default_factory=list)
    state: EngineState = EngineState.START
    termination: Optional[TerminationReason] = None

    def transition(self, state: EngineState, detail: str = "") -> None:
        logger.debug("[%s] %s -> %s %s", self.request_id, self.state, state, detail)
        self.state = state

    def terminate(self, reason: TerminationReason) -> None:
        self.termination = reason
        self.transition(EngineState.TERMINATED, reason.value)


class EscalationEngine:
    """Escalation state machine over an explicit, pre-validated registry."""

    def __init__(
        self,
        registry: SpecialistRegistry,
        domain_of: DomainClassifier,
        *,
        stage_timeout: Optional[float] = None,
        max_concurrency: int = 8,
    ) -> None:
        self._registry = registry
        self._domain_of = domain_of
        self._stage_timeout = stage_timeout
        self._max_concurrency = max_concurrency
        self._max_tiers = len(registry.tiers())

    @property
    def registry(self) -> SpecialistRegistry:
        return self._registry

    async def consult(
        self,
        task: Task,
        context: Optional[Context] = None,
        *,
        domain: Optional[str] = None,
        request_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ConsolidatedResult:
        """Consult specialists for ``task`` and return the consolidated result.

        Stage failures, timeouts and cancellation never raise; they end the
        chain and are reported on the result. ``UnknownDomainError`` is the
        only request-level error, raised before any specialist runs.
        """
        domain = domain or self._domain_of(task)
        entry = self._registry.entry(domain)
        request_id = request_id or uuid4().hex
        run = _Run(
            request_id=request_id,
            task=task,
            context=context or Context(),
            domain=domain,
            chain=ConsultationChain(request_id, max_length=self._max_tiers),
        )
        logger.info(
            "[%s] Consulting task %s (domain=%s, entry=%s)",
            run.request_id, task.id, domain, entry.descriptor.id,
        )

        try:
            await self._drive(run, entry, cancel_event)
        except asyncio.CancelledError:
            # The partial chain is the answer for a cancelled request.
            logger.warning("[%s] Cancelled after %d consultations", run.request_id, len(run.chain))
            run.terminate(TerminationReason.CANCELLED)

        result = aggregate(
            run.chain,
            task_id=task.id,
            domain=domain,
            termination=run.termination or TerminationReason.NO_HANDOFF,
            handoff_trail=run.trail,
            failures=run.failures,
        )
        logger.info(
            "[%s] Terminated: %s after tiers %s",
            run.request_id, result.termination.value, [t.name for t in run.chain.tiers()],
        )
        return result

    async def consult_many(
        self,
        requests: Iterable[tuple[Task, Optional[Context]]],
        *,
        concurrency: Optional[int] = None,
    ) -> list[ConsolidatedResult]:
        """Run independent requests concurrently; results keep input order."""
        semaphore = asyncio.Semaphore(concurrency or self._max_concurrency)

        async def _one(task: Task, context: Optional[Context]) -> ConsolidatedResult:
            async with semaphore:
                return await self.consult(task, context)

        return list(await asyncio.gather(*(_one(t, c) for t, c in requests)))

    # ---- state machine ----

    async def _drive(
        self, run: _Run, entry: ISpecialist, cancel_event: Optional[asyncio.Event]
    ) -> None:
        current = entry
        while True:
            run.transition(EngineState.CONSULTING, current.descriptor.id)
            criterion = await self._consult(run, current)
            if criterion is None:
                return

            run.transition(
                EngineState.ESCALATE_PENDING, f"{criterion.target_label}: {criterion.reason}"
            )
            try:
                plan = self._plan_escalation(run, current.descriptor, criterion)
            except HandoffTargetUnavailable as exc:
                logger.warning("[%s] %s", run.request_id, exc)
                run.terminate(TerminationReason.ESCALATION_UNAVAILABLE)
                return

            # Cannot trigger while the registry enforces climbing handoffs.
            if len(run.chain) + len(plan) > self._max_tiers:
                logger.error(
                    "[%s] Escalation %r would visit more than %d tiers",
                    run.request_id, criterion.condition, self._max_tiers,
                )
                run.terminate(TerminationReason.TIER_LIMIT)
                return

            target = plan[-1]
            for prerequisite in plan[:-1]:
                if self._cancelled(run, cancel_event):
                    return
                run.transition(
                    EngineState.CONSULTING,
                    f"{prerequisite.descriptor.id} (prerequisite for {target.descriptor.id})",
                )
                await self._consult(run, prerequisite, prerequisite_for=target.descriptor.id)
                if run.termination is not None:
                    return

            if self._cancelled(run, cancel_event):
                return
            # Recorded only once the target is about to be consulted.
            run.trail.append(
                HandoffEvent(
                    from_specialist_id=current.descriptor.id,
                    from_tier=current.descriptor.tier,
                    to_specialist_id=target.descriptor.id,
                    to_tier=target.descriptor.tier,
                    condition=criterion.condition,
                    reason=criterion.reason,
                    inserted_prerequisites=[p.descriptor.id for p in plan[:-1]],
                )
            )
            current = target

    def _cancelled(self, run: _Run, cancel_event: Optional[asyncio.Event]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("[%s] Cancel requested between stages", run.request_id)
            run.terminate(TerminationReason.CANCELLED)
            return True
        return False

    async def _consult(
        self,
        run: _Run,
        specialist: ISpecialist,
        *,
        prerequisite_for: Optional[str] = None,
    ) -> Optional[HandoffCriterion]:
        """Run one CONSULTING step and append its record.

        Returns the matched criterion when the chain should escalate.
        Otherwise returns None; ``run.termination`` is then set unless this
        was a prerequisite-only step that succeeded.
        """
        desc = specialist.descriptor
        stage_context = run.context.with_prior(run.chain.records)
        analysis: Any = None
        stage = "analyze"

        try:
            analysis = await self._run_stage(
                desc, "analyze", AnalysisError,
                lambda: specialist.analyze(run.task, stage_context),
            )
            stage = "recommend"
            recommendation = await self._run_stage(
                desc, "recommend", RecommendationError,
                lambda: specialist.generate_recommendations(analysis, run.task, stage_context),
            )
        except SpecialistStageError as exc:
            self._append_degraded(run, specialist, exc.stage, exc, analysis, prerequisite_for)
            run.terminate(TerminationReason.STAGE_FAILED)
            return None
        except asyncio.CancelledError as exc:
            self._append_degraded(run, specialist, stage, exc, analysis, prerequisite_for)
            raise

        record = ConsultationRecord(
            specialist_id=desc.id,
            specialist_name=desc.name,
            domain=desc.domain,
            tier=desc.tier,
            analysis=analysis,
            recommendation=recommendation,
            max_complexity_handled=specialist.get_max_complexity_handled(),
            prerequisite_for=prerequisite_for,
        )

        if prerequisite_for is not None:
            run.chain.append(record)
            return None

        try:
            criterion = self._select_handoff(specialist, analysis, run.task)
        except HandoffEvaluationError as exc:
            run.chain.append(record)
            run.failures.append(self._failure(desc, "handoff", exc))
            logger.warning("[%s] %s", run.request_id, exc)
            run.terminate(TerminationReason.HANDOFF_EVALUATION_FAILED)
            return None

        if criterion is None:
            run.chain.append(record)
            run.terminate(
                TerminationReason.EXHAUSTED if desc.is_top_of_path else TerminationReason.NO_HANDOFF
            )
            return None

        run.chain.append(record.model_copy(update={"triggered_handoff": criterion}))
        logger.info(
            "[%s] %s triggered %r -> %s",
            run.request_id, desc.id, criterion.condition, criterion.target_label,
        )
        return criterion

    async def _run_stage(
        self,
        desc: SpecialistDescriptor,
        stage: str,
        error_cls: type[SpecialistStageError],
        call: Callable[[], Awaitable[Any] | Any],
    ) -> Any:
        deadline: Optional[asyncio.Timeout] = None
        try:
            result = call()
            if inspect.isawaitable(result):
                async with asyncio.timeout(self._stage_timeout) as deadline:
                    result = await result
            return result
        except SpecialistStageError:
            raise
        except TimeoutError as exc:
            if deadline is not None and deadline.expired():
                raise StageTimeoutError(desc.id, desc.tier, stage, self._stage_timeout) from exc
            raise error_cls(desc.id, desc.tier, f"{type(exc).__name__}: {exc}") from exc
        except Exception as exc:
            raise error_cls(desc.id, desc.tier, f"{type(exc).__name__}: {exc}") from exc

    @staticmethod
    def _select_handoff(
        specialist: ISpecialist, analysis: Any, task: Task
    ) -> Optional[HandoffCriterion]:
        # Declaration order is the tie-break; first match wins.
        desc = specialist.descriptor
        for criterion in desc.handoff_criteria:
            try:
                matched = specialist.evaluate_handoff_criterion(criterion, analysis, task)
            except Exception as exc:
                raise HandoffEvaluationError(
                    desc.id, desc.tier, f"{criterion.condition}: {type(exc).__name__}: {exc}"
                ) from exc
            if matched:
                return criterion
        return None

    def _plan_escalation(
        self, run: _Run, source: SpecialistDescriptor, criterion: HandoffCriterion
    ) -> list[ISpecialist]:
        """Return missing prerequisite specialists (lowest tier first), then the target."""
        target = self._registry.resolve_target(source, criterion)
        if target is None:
            raise HandoffTargetUnavailable(
                criterion.condition, criterion.target_label, "target is not registered"
            )

        plan: list[ISpecialist] = []
        self._add_with_prerequisites(run, target, plan, criterion)

        last_tier = run.chain.last.tier if run.chain.last else None
        tiers = [p.descriptor.tier for p in plan]
        if tiers != sorted(set(tiers)) or (last_tier is not None and tiers[0] <= last_tier):
            raise HandoffTargetUnavailable(
                criterion.condition,
                criterion.target_label,
                f"tiers {[t.name for t in tiers]} cannot follow {last_tier.name if last_tier else 'START'}",
            )
        return plan

    def _add_with_prerequisites(
        self,
        run: _Run,
        specialist: ISpecialist,
        plan: list[ISpecialist],
        criterion: HandoffCriterion,
    ) -> None:
        desc = specialist.descriptor
        for tier in sorted(desc.prerequisites):
            # Any earlier record at the tier satisfies it, whatever its domain.
            if run.chain.has_tier(tier) or any(p.descriptor.tier == tier for p in plan):
                continue
            prerequisite = self._registry.lookup(desc.domain, tier)
            if prerequisite is None:
                raise HandoffTargetUnavailable(
                    criterion.condition,
                    criterion.target_label,
                    f"no {tier.name} specialist registered for domain {desc.domain!r}",
                )
            self._add_with_prerequisites(run, prerequisite, plan, criterion)
        plan.append(specialist)

    # ---- failure bookkeeping ----

    @staticmethod
    def _failure(desc: SpecialistDescriptor, stage: str, exc: BaseException) -> StageFailure:
        cause = exc.__cause__ if isinstance(exc, SpecialistStageError) and exc.__cause__ else exc
        return StageFailure(
            specialist_id=desc.id,
            tier=desc.tier,
            stage=stage,
            error_type=type(cause).__name__,
            message=str(exc) or type(exc).__name__,
        )

    def _append_degraded(
        self,
        run: _Run,
        specialist: ISpecialist,
        stage: str,
        exc: BaseException,
        analysis: Any,
        prerequisite_for: Optional[str],
    ) -> None:
        desc = specialist.descriptor
        failure = self._failure(desc, stage, exc)
        run.failures.append(failure)
        run.chain.append(
            ConsultationRecord(
                specialist_id=desc.id,
                specialist_name=desc.name,
                domain=desc.domain,
                tier=desc.tier,
                analysis=analysis,
                recommendation=None,
                status=ConsultationStatus.DEGRADED,
                max_complexity_handled=specialist.get_max_complexity_handled(),
                prerequisite_for=prerequisite_for,
                failure=failure,
            )
        )
        logger.warning(
            "[%s] %s (%s) degraded at %s: %s",
            run.request_id, desc.id, desc.tier.name, stage, failure.message,
        )
