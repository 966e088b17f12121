"""Health check API endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Request

from ivas.core.config import settings
from ivas.core.database import db_client
from ivas.core.dependencies import get_event_hub

router = APIRouter()


@router.get(
    "/health",
    summary="Health check endpoint",
    description="Check if the service, its database and the realtime hub are running",
    operation_id="get_service_health_status",
)
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check endpoint."""
    db_health = await db_client.health_check()
    hub = get_event_hub(request)
    hub_stats = hub.stats() if hub is not None else {"running": False}

    healthy = db_health["status"] == "healthy" and hub_stats["running"]
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "service": settings.app_name,
        "database": db_health,
        "realtime": hub_stats,
    }
