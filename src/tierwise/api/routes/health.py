"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(request: Request) -> dict:
    registry = request.app.state.service.engine.registry
    return {
        "status": "ready",
        "specialists": len(registry),
        "domains": registry.domains(),
    }
