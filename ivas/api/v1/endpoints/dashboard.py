from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request

from ivas.core.auth import require_regulator
from ivas.core.dependencies import get_dashboard_service
from ivas.schemas.auth import CurrentUser
from ivas.services.dashboard_service import DashboardService
from ivas.utils.responses import create_api_response

router = APIRouter()


@router.get(
    "/stats",
    summary="Regulator dashboard counts",
    operation_id="get_dashboard_stats",
)
async def get_dashboard_stats(
    request: Request,
    dashboard_service: Annotated[DashboardService, Depends(get_dashboard_service)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
) -> Dict[str, Any]:
    stats = await dashboard_service.stats()
    return create_api_response(stats, message="Dashboard statistics", request=request)
