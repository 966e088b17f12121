"""Approval workflow endpoints."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ivas.core.auth import get_current_user, require_regulator
from ivas.core.dependencies import get_approval_service, get_audit_context
from ivas.core.exceptions import PermissionDeniedError
from ivas.schemas.approval import ApprovalDecisionRequest, ApprovalResponse, ApprovalSubmitRequest
from ivas.schemas.auth import CurrentUser
from ivas.schemas.enums import ApprovalEntityType, ApprovalStatus
from ivas.services.approval_service import ApprovalService
from ivas.services.audit_service import AuditContext
from ivas.utils.logging import get_logger
from ivas.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Request approval",
    description="Open a pending approval for an existing entity",
    operation_id="submit_approval",
)
async def submit_approval(
    request: Request,
    payload: ApprovalSubmitRequest,
    approval_service: Annotated[ApprovalService, Depends(get_approval_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> Dict[str, Any]:
    company_scope = None
    if not current_user.is_regulator:
        if not current_user.is_company_member or current_user.company_id is None:
            raise PermissionDeniedError("Your role cannot request approvals")
        company_scope = current_user.company_id

    approval = await approval_service.submit(
        payload.entity_type,
        payload.entity_id,
        requested_by=current_user.id,
        notes=payload.notes,
        context=context,
        company_scope=company_scope,
    )
    return create_api_response(
        ApprovalResponse.model_validate(approval), message="Approval requested", request=request
    )


@router.get(
    "",
    summary="List approvals",
    operation_id="list_approvals",
)
async def list_approvals(
    request: Request,
    approval_service: Annotated[ApprovalService, Depends(get_approval_service)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
    approval_status: Optional[ApprovalStatus] = Query(None, alias="status"),
    entity_type: Optional[ApprovalEntityType] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> Dict[str, Any]:
    items, total = await approval_service.list_approvals(
        status=approval_status.value if approval_status else None,
        entity_type=entity_type.value if entity_type else None,
        skip=skip,
        limit=limit,
    )
    return create_api_response(
        {
            "items": [ApprovalResponse.model_validate(a).model_dump(mode="json") for a in items],
            "total": total,
            "skip": skip,
            "limit": limit,
        },
        message="Approvals retrieved",
        request=request,
    )


@router.get(
    "/{approval_id}",
    summary="Get an approval",
    operation_id="get_approval",
)
async def get_approval(
    request: Request,
    approval_id: int,
    approval_service: Annotated[ApprovalService, Depends(get_approval_service)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
) -> Dict[str, Any]:
    approval = await approval_service.get_approval(approval_id)
    return create_api_response(ApprovalResponse.model_validate(approval), message="Approval retrieved", request=request)


@router.post(
    "/{approval_id}/decision",
    summary="Approve or decline",
    description="Move a pending approval to approved or declined; a decline needs a reason",
    operation_id="decide_approval",
)
async def decide_approval(
    request: Request,
    approval_id: int,
    payload: ApprovalDecisionRequest,
    approval_service: Annotated[ApprovalService, Depends(get_approval_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
) -> Dict[str, Any]:
    approval = await approval_service.decide(
        approval_id, payload.decision, approver_id=current_user.id, reason=payload.reason, context=context
    )
    return create_api_response(
        ApprovalResponse.model_validate(approval), message=f"Approval {approval.status}", request=request
    )
