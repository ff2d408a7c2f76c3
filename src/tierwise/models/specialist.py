"""Specialist descriptor, tier ordinal and handoff criterion models."""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Any, Callable, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, field_validator


class Tier(IntEnum):
    """Escalation level, ordered by increasing authority."""

    TIER_1 = 1  # generalist
    TIER_2 = 2  # specialist
    TIER_3 = 3  # architect

    @classmethod
    def parse(cls, value: Any) -> "Tier":
        """Accept ``Tier``, ``2``, ``"2"``, ``"TIER_2"`` or ``"tier-2"``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Not a tier: {value!r}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            text = value.strip().upper().replace("-", "_")
            if text.isdigit():
                return cls(int(text))
            if text in cls.__members__:
                return cls[text]
        raise ValueError(f"Not a tier: {value!r}")


TierField = Annotated[
    Tier,
    BeforeValidator(Tier.parse),
    PlainSerializer(lambda t: t.name, return_type=str, when_used="json"),
]


def _ordered_unique(values: Any) -> Any:
    if values is None:
        return ()
    seen: list[Any] = []
    for v in values:
        if v not in seen:
            seen.append(v)
    return tuple(seen)


class HandoffCriterion(BaseModel):
    """A named predicate that redirects the engine to a higher tier."""

    model_config = ConfigDict(frozen=True)

    condition: str
    reason: str
    target_tier: TierField
    target_specialist_id: Optional[str] = None  # None: same domain, target_tier
    predicate: Optional[Callable[[Any, Any], bool]] = Field(default=None, exclude=True, repr=False)

    @property
    def target_label(self) -> str:
        return self.target_specialist_id or self.target_tier.name


class SpecialistDescriptor(BaseModel):
    """Static identity and wiring of one registered specialist."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    domain: str
    tier: TierField
    expertise: tuple[str, ...] = ()
    prerequisites: tuple[TierField, ...] = ()
    handoff_criteria: tuple[HandoffCriterion, ...] = ()

    @field_validator("expertise", mode="before")
    @classmethod
    def _dedupe_expertise(cls, values: Any) -> Any:
        return _ordered_unique(values)

    @field_validator("prerequisites", mode="before")
    @classmethod
    def _dedupe_prerequisites(cls, values: Any) -> Any:
        return _ordered_unique(Tier.parse(v) for v in values or ())

    @property
    def is_top_of_path(self) -> bool:
        """True when the specialist declares no further handoffs."""
        return not self.handoff_criteria
