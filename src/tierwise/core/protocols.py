"""Protocol interfaces for all Tierwise abstractions.

All inter-layer communication uses these Protocols: structural typing,
no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from tierwise.models.consultation import ConsolidatedResult, Recommendation
from tierwise.models.specialist import HandoffCriterion, SpecialistDescriptor
from tierwise.models.task import Context, Task


# ---------------------------------------------------------------------------
# Specialist
# ---------------------------------------------------------------------------

@runtime_checkable
class ISpecialist(Protocol):
    """One (domain, tier) analyzer. Must be stateless and reentrant."""

    @property
    def descriptor(self) -> SpecialistDescriptor: ...

    async def analyze(self, task: Task, context: Context) -> Any: ...

    async def generate_recommendations(
        self, analysis: Any, task: Task, context: Context
    ) -> Recommendation: ...

    def evaluate_handoff_criterion(
        self, criterion: HandoffCriterion, analysis: Any, task: Task
    ) -> bool: ...

    def get_max_complexity_handled(self) -> float: ...


# ---------------------------------------------------------------------------
# Persistence: Audit Log
# ---------------------------------------------------------------------------

@runtime_checkable
class IAuditLog(Protocol):
    """Append-only log of consolidated results keyed by request id."""

    def append(self, result: ConsolidatedResult) -> None: ...

    def get(self, request_id: str) -> Optional[ConsolidatedResult]: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...
