"""Claim lifecycle endpoints."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ivas.core.auth import get_current_user, require_claim_handler, require_claim_reporter
from ivas.core.dependencies import get_audit_context, get_claim_service
from ivas.schemas.auth import CurrentUser
from ivas.schemas.claim import ClaimReportRequest, ClaimResponse, DenyClaimRequest, SettleClaimRequest
from ivas.schemas.enums import ClaimStatus
from ivas.services.audit_service import AuditContext
from ivas.services.claim_service import ClaimService
from ivas.utils.responses import create_api_response

router = APIRouter()


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Report a claim",
    operation_id="report_claim",
)
async def report_claim(
    request: Request,
    payload: ClaimReportRequest,
    claim_service: Annotated[ClaimService, Depends(get_claim_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_claim_reporter)],
) -> Dict[str, Any]:
    claim = await claim_service.report(
        payload.policy_id,
        payload.description,
        current_user,
        insurance_type=payload.insurance_type,
        attachment_url=payload.attachment_url,
        uploads=payload.uploads,
        previous_claim_id=payload.previous_claim_id,
        context=context,
    )
    return create_api_response(ClaimResponse.model_validate(claim), message="Claim reported", request=request)


@router.get(
    "",
    summary="List claims",
    operation_id="list_claims",
)
async def list_claims(
    request: Request,
    claim_service: Annotated[ClaimService, Depends(get_claim_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    claim_status: Optional[ClaimStatus] = Query(None, alias="status"),
    policy_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> Dict[str, Any]:
    items, total = await claim_service.list_claims(
        current_user,
        status=claim_status.value if claim_status else None,
        policy_id=policy_id,
        skip=skip,
        limit=limit,
    )
    return create_api_response(
        {
            "items": [ClaimResponse.model_validate(c).model_dump(mode="json") for c in items],
            "total": total,
            "skip": skip,
            "limit": limit,
        },
        message="Claims retrieved",
        request=request,
    )


@router.get(
    "/{claim_id}",
    summary="Get a claim",
    operation_id="get_claim",
)
async def get_claim(
    request: Request,
    claim_id: int,
    claim_service: Annotated[ClaimService, Depends(get_claim_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> Dict[str, Any]:
    claim = await claim_service.get_claim(claim_id, current_user)
    return create_api_response(ClaimResponse.model_validate(claim), message="Claim retrieved", request=request)


@router.post(
    "/{claim_id}/settle",
    summary="Settle a claim",
    operation_id="settle_claim",
)
async def settle_claim(
    request: Request,
    claim_id: int,
    payload: SettleClaimRequest,
    claim_service: Annotated[ClaimService, Depends(get_claim_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_claim_handler)],
) -> Dict[str, Any]:
    claim = await claim_service.settle(claim_id, payload.settlement_amount, payload.notes, current_user, context=context)
    return create_api_response(ClaimResponse.model_validate(claim), message="Claim settled", request=request)


@router.post(
    "/{claim_id}/deny",
    summary="Deny a claim",
    operation_id="deny_claim",
)
async def deny_claim(
    request: Request,
    claim_id: int,
    payload: DenyClaimRequest,
    claim_service: Annotated[ClaimService, Depends(get_claim_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_claim_handler)],
) -> Dict[str, Any]:
    claim = await claim_service.deny(claim_id, payload.reason, current_user, context=context)
    return create_api_response(ClaimResponse.model_validate(claim), message="Claim denied", request=request)
