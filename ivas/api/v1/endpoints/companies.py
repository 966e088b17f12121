"""Company registration endpoints.

Registration and renewal go through the approval workflow; suspension and
reinstatement are immediate regulator actions.
"""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ivas.core.auth import get_current_user, get_current_user_optional, require_company_member, require_regulator
from ivas.core.dependencies import get_approval_service, get_audit_context, get_company_service
from ivas.core.exceptions import PermissionDeniedError
from ivas.schemas.approval import ApprovalResponse
from ivas.schemas.auth import CurrentUser
from ivas.schemas.company import CompanyNotesRequest, CompanyRegisterRequest, CompanyResponse, SuspendCompanyRequest
from ivas.schemas.enums import ApprovalEntityType, RegistrationStatus
from ivas.services.approval_service import ApprovalService
from ivas.services.audit_service import AuditContext
from ivas.services.company_service import CompanyService, suspension_ends_at
from ivas.utils.logging import get_logger
from ivas.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


def _company_data(company) -> Dict[str, Any]:
    data = CompanyResponse.model_validate(company).model_dump(mode="json")
    data["suspension_ends_at"] = suspension_ends_at(company)
    return data


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Register a company",
    description="Create a pending company and open its registration request",
    operation_id="register_company",
)
async def register_company(
    request: Request,
    payload: CompanyRegisterRequest,
    company_service: Annotated[CompanyService, Depends(get_company_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[Optional[CurrentUser], Depends(get_current_user_optional)],
) -> Dict[str, Any]:
    company, approval = await company_service.register(
        payload, requested_by=current_user.id if current_user else None, context=context
    )
    return create_api_response(
        {"company": _company_data(company), "approval_id": approval.id},
        message="Company registration submitted for approval",
        request=request,
    )


@router.get(
    "",
    summary="List companies",
    operation_id="list_companies",
)
async def list_companies(
    request: Request,
    company_service: Annotated[CompanyService, Depends(get_company_service)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
    registration_status: Optional[RegistrationStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> Dict[str, Any]:
    items, total = await company_service.list_companies(
        registration_status.value if registration_status else None, skip=skip, limit=limit
    )
    return create_api_response(
        {"items": [_company_data(c) for c in items], "total": total, "skip": skip, "limit": limit},
        message="Companies retrieved",
        request=request,
    )


@router.post(
    "/expire-lapsed",
    summary="Expire lapsed registrations",
    description="Mark approved companies whose registration period has ended as expired",
    operation_id="expire_lapsed_registrations",
)
async def expire_lapsed_registrations(
    request: Request,
    company_service: Annotated[CompanyService, Depends(get_company_service)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
) -> Dict[str, Any]:
    expired = await company_service.expire_lapsed_registrations(actor_id=current_user.id)
    return create_api_response(
        {"items": [_company_data(c) for c in expired], "total": len(expired)},
        message=f"{len(expired)} registrations expired",
        request=request,
    )


@router.get(
    "/{company_id}",
    summary="Get a company",
    operation_id="get_company",
)
async def get_company(
    request: Request,
    company_id: int,
    company_service: Annotated[CompanyService, Depends(get_company_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> Dict[str, Any]:
    if not current_user.is_regulator and current_user.company_id != company_id:
        raise PermissionDeniedError("You can only view your own company")
    company = await company_service.get_company(company_id)
    return create_api_response(_company_data(company), message="Company retrieved", request=request)


@router.get(
    "/{company_id}/approvals",
    summary="Registration history",
    operation_id="get_company_approval_history",
)
async def get_company_approval_history(
    request: Request,
    company_id: int,
    approval_service: Annotated[ApprovalService, Depends(get_approval_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> Dict[str, Any]:
    if not current_user.is_regulator and current_user.company_id != company_id:
        raise PermissionDeniedError("You can only view your own company")
    history = await approval_service.history(ApprovalEntityType.INSURER, company_id)
    return create_api_response(
        [ApprovalResponse.model_validate(a) for a in history],
        message="Registration history retrieved",
        request=request,
    )


@router.post(
    "/{company_id}/renew",
    summary="Request registration renewal",
    operation_id="renew_company_registration",
)
async def renew_registration(
    request: Request,
    company_id: int,
    payload: CompanyNotesRequest,
    company_service: Annotated[CompanyService, Depends(get_company_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_company_member)],
) -> Dict[str, Any]:
    if not current_user.is_regulator and current_user.company_id != company_id:
        raise PermissionDeniedError("You can only renew your own company")
    approval = await company_service.renew_registration(
        company_id, requested_by=current_user.id, notes=payload.notes, context=context
    )
    return create_api_response(
        ApprovalResponse.model_validate(approval), message="Renewal submitted for approval", request=request
    )


@router.post(
    "/{company_id}/suspend",
    summary="Suspend a company",
    operation_id="suspend_company",
)
async def suspend_company(
    request: Request,
    company_id: int,
    payload: SuspendCompanyRequest,
    company_service: Annotated[CompanyService, Depends(get_company_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
) -> Dict[str, Any]:
    company = await company_service.suspend(
        company_id, payload.reason, payload.duration_days, actor_id=current_user.id, context=context
    )
    return create_api_response(_company_data(company), message="Company suspended", request=request)


@router.post(
    "/{company_id}/reinstate",
    summary="Lift a suspension",
    operation_id="reinstate_company",
)
async def reinstate_company(
    request: Request,
    company_id: int,
    payload: CompanyNotesRequest,
    company_service: Annotated[CompanyService, Depends(get_company_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_regulator)],
) -> Dict[str, Any]:
    company = await company_service.reinstate(company_id, actor_id=current_user.id, notes=payload.notes, context=context)
    return create_api_response(_company_data(company), message="Company reinstated", request=request)
