"""Unauthenticated endpoints for the public verification portal."""

import time
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request, status

from ivas.core.dependencies import get_audit_context, get_claim_service, get_verification_service
from ivas.schemas.claim import ClaimResponse, PublicClaimRequest
from ivas.schemas.verification import PublicVerifyRequest
from ivas.services.audit_service import AuditContext
from ivas.services.claim_service import ClaimService
from ivas.services.verification_service import VerificationService
from ivas.utils.responses import create_api_response

router = APIRouter()


@router.post(
    "/verify",
    summary="Public policy verification",
    description="Verify a policy number against a named insurer without an account",
    operation_id="verify_policy_public",
)
async def verify_policy_public(
    request: Request,
    payload: PublicVerifyRequest,
    verification_service: Annotated[VerificationService, Depends(get_verification_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
) -> Dict[str, Any]:
    received_at = time.perf_counter()
    result = await verification_service.verify_public(
        payload.policy_number,
        payload.company_id,
        holder_name=payload.holder_name,
        method=payload.verification_method,
        context=context,
        received_at=received_at,
    )
    return create_api_response(result, message=result.reason, request=request)


@router.post(
    "/claims",
    status_code=status.HTTP_201_CREATED,
    summary="Public claim submission",
    operation_id="report_claim_public",
)
async def report_claim_public(
    request: Request,
    payload: PublicClaimRequest,
    claim_service: Annotated[ClaimService, Depends(get_claim_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
) -> Dict[str, Any]:
    claim = await claim_service.report_public(
        payload.policy_number,
        payload.company_id,
        payload.description,
        insurance_type=payload.insurance_type,
        attachment_url=payload.attachment_url,
        context=context,
    )
    return create_api_response(ClaimResponse.model_validate(claim), message="Claim reported", request=request)
