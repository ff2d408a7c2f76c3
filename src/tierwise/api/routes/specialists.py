"""Catalog introspection endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["specialists"])


@router.get("/specialists")
async def list_specialists(request: Request) -> dict:
    """Return registered specialists grouped by domain, lowest tier first."""
    registry = request.app.state.service.engine.registry
    grouped: dict[str, list[dict]] = {}
    for desc in registry.descriptors():
        grouped.setdefault(desc.domain, []).append(desc.model_dump(mode="json"))
    return {"default_domain": registry.default_domain, "domains": grouped}
