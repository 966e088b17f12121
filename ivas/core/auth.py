"""Authentication dependencies for FastAPI routes.

The bearer token is trusted to carry the caller's id, role and company;
credentials themselves are never re-validated here.
"""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ivas.core.jwt import jwt_verifier
from ivas.schemas.auth import CurrentUser, TokenClaims
from ivas.schemas.enums import UserRole
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def claims_to_user(claims: TokenClaims) -> CurrentUser:
    try:
        user_id = int(claims.sub)
    except ValueError as e:
        raise jwt.InvalidTokenError(f"Token subject is not a user id: {claims.sub}") from e
    return CurrentUser(id=user_id, role=claims.role, company_id=claims.company_id)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Get the current authenticated user from the bearer token.

    Raises:
        HTTPException: If token is missing, invalid, or expired
    """
    if not credentials:
        LOGGER.warning("No authorization credentials provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = await jwt_verifier.verify_token(credentials.credentials)
        user = claims_to_user(claims)
    except jwt.InvalidTokenError as e:
        LOGGER.warning(f"Invalid token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    LOGGER.debug(f"Authenticated user: {user.id} ({user.role.value})")
    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[CurrentUser]:
    """Get the current user if authenticated, None otherwise.

    Used by the public endpoints, which accept anonymous callers but still
    record who asked when a valid token is presented.
    """
    if not credentials:
        return None

    try:
        return await get_current_user(credentials)
    except HTTPException:
        return None


def require_any_role(*required_roles: UserRole):
    """Create a dependency that requires any of the specified roles.

    Example:
        regulator = require_any_role(UserRole.ADMIN, UserRole.CBL)

        @router.post("/{company_id}/suspend")
        async def suspend(user: CurrentUser = Depends(regulator)):
            ...
    """
    allowed = {UserRole(role) for role in required_roles}

    async def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            LOGGER.warning(
                f"Access denied for user {user.id}: role '{user.role.value}' not in allowed roles "
                f"{sorted(role.value for role in allowed)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required roles: {', '.join(sorted(r.value for r in allowed))}",
            )
        return user

    return role_checker


# Pre-defined role dependencies for common use cases
require_regulator = require_any_role(UserRole.ADMIN, UserRole.CBL)
require_company_member = require_any_role(UserRole.ADMIN, UserRole.COMPANY, UserRole.INSURER)
require_user_manager = require_any_role(UserRole.ADMIN, UserRole.CBL, UserRole.COMPANY, UserRole.INSURER)
require_verifier = require_any_role(UserRole.ADMIN, UserRole.OFFICER, UserRole.CBL)
require_claim_handler = require_any_role(UserRole.ADMIN, UserRole.COMPANY, UserRole.INSURER)
require_claim_reporter = require_any_role(
    UserRole.ADMIN, UserRole.COMPANY, UserRole.INSURER, UserRole.INSURED
)
