"""Audit log query endpoint."""

from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from ivas.core.auth import require_regulator
from ivas.core.dependencies import get_audit_service
from ivas.schemas.audit import AuditLogResponse
from ivas.schemas.auth import CurrentUser
from ivas.schemas.enums import AuditSeverity
from ivas.services.audit_service import AuditService
from ivas.utils.responses import create_api_response

router = APIRouter()


@router.get(
    "",
    summary="Query the audit log",
    description="Paginated compliance trail, newest first",
    operation_id="list_audit_logs",
)
async def list_audit_logs(
    request: Request,
    audit_service: Annotated[AuditService, Depends(get_audit_service)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    severity: Optional[AuditSeverity] = Query(None),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
) -> Dict[str, Any]:
    items, total = await audit_service.list_entries(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        severity=severity.value if severity else None,
        since=since,
        until=until,
        skip=skip,
        limit=limit,
    )
    return create_api_response(
        {
            "items": [AuditLogResponse.model_validate(e).model_dump(mode="json") for e in items],
            "total": total,
            "skip": skip,
            "limit": limit,
        },
        message="Audit entries retrieved",
        request=request,
    )
