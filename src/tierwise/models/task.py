"""Task and Context, the immutable inputs to one consultation request."""

from __future__ import annotations

from typing import Any, Iterable
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tierwise.models.consultation import ConsultationRecord


class Task(BaseModel):
    """Free-text task supplied once per request."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    description: str
    attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        """Lower-cased description used for keyword matching."""
        return self.description.lower()


class Context(BaseModel):
    """Read-only request configuration handed to every specialist.

    ``values`` holds free-form settings (environment, industry flags,
    constraints). ``collaborators`` holds objects a specialist may await on
    and is never serialized. ``prior`` is filled in by the engine with the
    records accumulated earlier in the same chain.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    values: dict[str, Any] = Field(default_factory=dict)
    collaborators: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    prior: tuple[ConsultationRecord, ...] = Field(default=(), exclude=True)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def collaborator(self, name: str) -> Any:
        try:
            return self.collaborators[name]
        except KeyError:
            raise KeyError(f"No collaborator named {name!r} in context") from None

    def with_prior(self, records: Iterable[ConsultationRecord]) -> "Context":
        return self.model_copy(update={"prior": tuple(records)})
