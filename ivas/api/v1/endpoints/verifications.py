"""Officer verification endpoints."""

import time
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from ivas.core.auth import get_current_user, require_verifier
from ivas.core.dependencies import get_audit_context, get_verification_service
from ivas.schemas.auth import CurrentUser
from ivas.schemas.enums import VerificationStatus
from ivas.schemas.verification import VerificationPage, VerificationRecord, VerifyPolicyRequest
from ivas.services.audit_service import AuditContext
from ivas.services.verification_service import VerificationService
from ivas.utils.logging import get_logger
from ivas.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    summary="Verify a policy",
    description="Classify a policy number as valid, expired, fake or not found and record the lookup",
    operation_id="verify_policy",
)
async def verify_policy(
    request: Request,
    payload: VerifyPolicyRequest,
    verification_service: Annotated[VerificationService, Depends(get_verification_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_verifier)],
) -> Dict[str, Any]:
    """Verify a policy on behalf of the calling officer.

    A missing policy is a normal ``not_found`` outcome, not an error.
    """
    received_at = time.perf_counter()
    result = await verification_service.verify(
        payload.policy_number,
        holder_name=payload.holder_name,
        company_id=payload.company_id,
        officer_id=current_user.id,
        method=payload.verification_method,
        location=payload.location,
        latitude=payload.latitude,
        longitude=payload.longitude,
        notes=payload.notes,
        context=context,
        received_at=received_at,
    )
    return create_api_response(result, message=result.reason, request=request)


@router.get(
    "",
    summary="List verifications",
    operation_id="list_verifications",
)
async def list_verifications(
    request: Request,
    verification_service: Annotated[VerificationService, Depends(get_verification_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    verification_status: Optional[VerificationStatus] = Query(None, alias="status"),
    company_id: Optional[int] = Query(None),
    policy_number: Optional[str] = Query(None),
    officer_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> Dict[str, Any]:
    items, total = await verification_service.list_verifications(
        current_user,
        status=verification_status.value if verification_status else None,
        company_id=company_id,
        policy_number=policy_number,
        officer_id=officer_id,
        skip=skip,
        limit=limit,
    )
    page = VerificationPage(
        items=[VerificationRecord.model_validate(v) for v in items], total=total, skip=skip, limit=limit
    )
    return create_api_response(page, message="Verifications retrieved", request=request)


@router.get(
    "/summary",
    summary="Verification statistics",
    operation_id="get_verification_summary",
)
async def get_verification_summary(
    request: Request,
    verification_service: Annotated[VerificationService, Depends(get_verification_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    company_id: Optional[int] = Query(None),
) -> Dict[str, Any]:
    summary = await verification_service.summary(current_user, company_id=company_id)
    return create_api_response(summary, message="Verification summary", request=request)


@router.get(
    "/{verification_id}",
    summary="Get a verification",
    operation_id="get_verification",
)
async def get_verification(
    request: Request,
    verification_id: int,
    verification_service: Annotated[VerificationService, Depends(get_verification_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> Dict[str, Any]:
    record = await verification_service.get_verification(verification_id, current_user)
    return create_api_response(
        VerificationRecord.model_validate(record), message="Verification retrieved", request=request
    )
