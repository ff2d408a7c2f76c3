"""Consultation endpoints."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from tierwise.models.task import Context, Task

router = APIRouter(tags=["consultations"])


class TaskIn(BaseModel):
    id: Optional[str] = None
    description: str
    attributes: dict[str, Any] = Field(default_factory=dict)


class ConsultationRequest(BaseModel):
    task: TaskIn
    context: dict[str, Any] = Field(default_factory=dict)
    domain: Optional[str] = None


@router.post("")
async def create_consultation(body: ConsultationRequest, request: Request) -> dict:
    """Run a consultation and return the consolidated result."""
    task_fields = body.task.model_dump(exclude_none=True)
    task = Task(**task_fields)
    result = await request.app.state.service.consult(
        task, Context(values=body.context), domain=body.domain
    )
    return result.model_dump(mode="json")


@router.get("/{request_id}")
async def get_consultation(request_id: str, request: Request) -> dict:
    """Return an audited result by request id."""
    result = request.app.state.service.history(request_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No consultation {request_id!r}")
    return result.model_dump(mode="json")
