"""Policy submission and numbering endpoints."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from ivas.core.auth import get_current_user, require_company_member
from ivas.core.dependencies import get_audit_context, get_numbering_service, get_policy_service
from ivas.core.exceptions import PermissionDeniedError, ValidationError
from ivas.schemas.auth import CurrentUser
from ivas.schemas.enums import ApprovalStatus
from ivas.schemas.policy import PolicyCreateRequest, PolicyResponse, PolicySubmission
from ivas.services.audit_service import AuditContext
from ivas.services.policy_numbering_service import PolicyNumberingService
from ivas.services.policy_service import PolicyService
from ivas.utils.logging import get_logger
from ivas.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


def _numbering_company(current_user: CurrentUser, company_id: Optional[int]) -> int:
    if current_user.is_regulator:
        if company_id is None:
            raise ValidationError("company_id is required")
        return company_id
    if current_user.company_id is None or (company_id is not None and company_id != current_user.company_id):
        raise PermissionDeniedError("You can only view numbering for your own company")
    return current_user.company_id


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Submit a policy",
    description="Store a new policy and open its regulator approval request",
    operation_id="submit_policy",
)
async def submit_policy(
    request: Request,
    payload: PolicyCreateRequest,
    policy_service: Annotated[PolicyService, Depends(get_policy_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_company_member)],
) -> Dict[str, Any]:
    """Submit a policy for approval.

    The policy number is allocated when the payload leaves it empty.
    """
    policy, approval = await policy_service.submit_policy(payload, current_user, context=context)
    submission = PolicySubmission(policy=PolicyResponse.model_validate(policy), approval_id=approval.id)
    return create_api_response(submission, message="Policy submitted for approval", request=request)


@router.get(
    "/numbering/next",
    summary="Preview the next policy number",
    operation_id="peek_next_policy_number",
)
async def peek_next_policy_number(
    request: Request,
    numbering: Annotated[PolicyNumberingService, Depends(get_numbering_service)],
    current_user: Annotated[CurrentUser, Depends(require_company_member)],
    company_id: Optional[int] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=9999),
) -> Dict[str, Any]:
    preview = await numbering.peek_next(_numbering_company(current_user, company_id), year)
    return create_api_response(preview, message="Next policy number", request=request)


@router.get(
    "/numbering/stats",
    summary="Policy numbering statistics",
    operation_id="get_policy_numbering_stats",
)
async def get_policy_numbering_stats(
    request: Request,
    numbering: Annotated[PolicyNumberingService, Depends(get_numbering_service)],
    current_user: Annotated[CurrentUser, Depends(require_company_member)],
    company_id: Optional[int] = Query(None),
) -> Dict[str, Any]:
    stats = await numbering.stats(_numbering_company(current_user, company_id))
    return create_api_response(stats, message="Numbering statistics", request=request)


@router.get(
    "",
    summary="List policies",
    operation_id="list_policies",
)
async def list_policies(
    request: Request,
    policy_service: Annotated[PolicyService, Depends(get_policy_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    company_id: Optional[int] = Query(None),
    approval_status: Optional[ApprovalStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> Dict[str, Any]:
    items, total = await policy_service.list_policies(
        current_user,
        company_id=company_id,
        approval_status=approval_status.value if approval_status else None,
        skip=skip,
        limit=limit,
    )
    return create_api_response(
        {
            "items": [PolicyResponse.model_validate(p).model_dump(mode="json") for p in items],
            "total": total,
            "skip": skip,
            "limit": limit,
        },
        message="Policies retrieved",
        request=request,
    )


@router.get(
    "/{policy_id}",
    summary="Get a policy",
    operation_id="get_policy",
)
async def get_policy(
    request: Request,
    policy_id: int,
    policy_service: Annotated[PolicyService, Depends(get_policy_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> Dict[str, Any]:
    policy = await policy_service.get_policy(policy_id, current_user)
    return create_api_response(PolicyResponse.model_validate(policy), message="Policy retrieved", request=request)


@router.post(
    "/{policy_id}/deactivate",
    summary="Deactivate a policy",
    description="Withdraw a policy; later verifications report it as fake",
    operation_id="deactivate_policy",
)
async def deactivate_policy(
    request: Request,
    policy_id: int,
    policy_service: Annotated[PolicyService, Depends(get_policy_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_company_member)],
    reason: Optional[str] = Body(None, embed=True),
) -> Dict[str, Any]:
    policy = await policy_service.deactivate_policy(policy_id, current_user, reason=reason, context=context)
    return create_api_response(PolicyResponse.model_validate(policy), message="Policy deactivated", request=request)
