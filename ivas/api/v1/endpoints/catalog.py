"""Bond and insurance type endpoints."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ivas.core.auth import get_current_user, require_company_member
from ivas.core.dependencies import get_audit_context, get_catalog_service
from ivas.schemas.auth import CurrentUser
from ivas.schemas.catalog import BondCreateRequest, BondResponse, InsuranceTypeCreateRequest, InsuranceTypeResponse
from ivas.schemas.enums import ApprovalStatus
from ivas.services.audit_service import AuditContext
from ivas.services.catalog_service import CatalogService
from ivas.utils.responses import create_api_response

router = APIRouter()


@router.post(
    "/bonds",
    status_code=status.HTTP_201_CREATED,
    summary="Register a bond",
    operation_id="create_bond",
)
async def create_bond(
    request: Request,
    payload: BondCreateRequest,
    catalog_service: Annotated[CatalogService, Depends(get_catalog_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_company_member)],
) -> Dict[str, Any]:
    bond, approval = await catalog_service.create_bond(payload, current_user, context=context)
    return create_api_response(
        {"bond": BondResponse.model_validate(bond).model_dump(mode="json"), "approval_id": approval.id},
        message="Bond submitted for approval",
        request=request,
    )


@router.get(
    "/bonds",
    summary="List bonds",
    operation_id="list_bonds",
)
async def list_bonds(
    request: Request,
    catalog_service: Annotated[CatalogService, Depends(get_catalog_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> Dict[str, Any]:
    bonds = await catalog_service.list_bonds(current_user, skip=skip, limit=limit)
    return create_api_response(
        [BondResponse.model_validate(b) for b in bonds], message="Bonds retrieved", request=request
    )


@router.post(
    "/types",
    status_code=status.HTTP_201_CREATED,
    summary="Register an insurance type",
    operation_id="create_insurance_type",
)
async def create_insurance_type(
    request: Request,
    payload: InsuranceTypeCreateRequest,
    catalog_service: Annotated[CatalogService, Depends(get_catalog_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_company_member)],
) -> Dict[str, Any]:
    insurance_type, approval = await catalog_service.create_insurance_type(payload, current_user, context=context)
    return create_api_response(
        {
            "insurance_type": InsuranceTypeResponse.model_validate(insurance_type).model_dump(mode="json"),
            "approval_id": approval.id,
        },
        message="Insurance type submitted for approval",
        request=request,
    )


@router.get(
    "/types",
    summary="List insurance types",
    operation_id="list_insurance_types",
)
async def list_insurance_types(
    request: Request,
    catalog_service: Annotated[CatalogService, Depends(get_catalog_service)],
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    approval_status: Optional[ApprovalStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> Dict[str, Any]:
    types = await catalog_service.list_insurance_types(
        approval_status.value if approval_status else None, skip=skip, limit=limit
    )
    return create_api_response(
        [InsuranceTypeResponse.model_validate(t) for t in types], message="Insurance types retrieved", request=request
    )
