"""User account endpoints."""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request, status

from ivas.core.auth import require_user_manager
from ivas.core.dependencies import get_audit_context, get_user_service
from ivas.schemas.auth import CurrentUser
from ivas.schemas.user import UserCreateRequest, UserResponse
from ivas.services.audit_service import AuditContext
from ivas.services.user_service import UserService
from ivas.utils.responses import create_api_response

router = APIRouter()


def _user_data(user) -> Dict[str, Any]:
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
    description="Regulators create any account; company members add pending accounts to their own company",
    operation_id="create_user",
)
async def create_user(
    request: Request,
    payload: UserCreateRequest,
    user_service: Annotated[UserService, Depends(get_user_service)],
    context: Annotated[AuditContext, Depends(get_audit_context)],
    current_user: Annotated[CurrentUser, Depends(require_user_manager)],
) -> Dict[str, Any]:
    user, approval = await user_service.create_user(payload, current_user, context=context)
    return create_api_response(
        {"user": _user_data(user), "approval_id": approval.id if approval else None},
        message="User created" if approval is None else "User submitted for approval",
        request=request,
    )


@router.get(
    "/company/{company_id}",
    summary="List company users",
    operation_id="list_company_users",
)
async def list_company_users(
    request: Request,
    company_id: int,
    user_service: Annotated[UserService, Depends(get_user_service)],
    current_user: Annotated[CurrentUser, Depends(require_user_manager)],
) -> Dict[str, Any]:
    users = await user_service.list_company_users(company_id, current_user)
    return create_api_response(
        {"items": [_user_data(u) for u in users], "total": len(users)},
        message="Users retrieved",
        request=request,
    )
