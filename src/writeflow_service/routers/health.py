"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from writeflow_service.core.state import get_app_state
from writeflow_service.routers.helpers import get_marketplace
from writeflow_service.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Unauthenticated liveness probe with per-status task counts."""
    state = get_app_state()
    stats = await get_marketplace().get_stats()
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        total_tasks=stats["total_tasks"],
        tasks_by_status=stats["tasks_by_status"],
    )
