"""Authentication schemas.

The token issuer lives outside this service; these models only describe
what a verified bearer token tells us about the caller.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ivas.schemas.enums import UserRole

REGULATOR_ROLES = (UserRole.ADMIN, UserRole.CBL)
COMPANY_ROLES = (UserRole.COMPANY, UserRole.INSURER)


class TokenClaims(BaseModel):
    """Decoded access token claims."""

    sub: str = Field(..., description="Subject (user ID)")
    role: UserRole = Field(..., description="User role")
    company_id: Optional[int] = Field(None, description="Company the user acts for")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")
    iss: str = Field(..., description="Token issuer")


class CurrentUser(BaseModel):
    """Authenticated caller as seen by route handlers and services."""

    id: int = Field(..., description="User ID")
    role: UserRole = Field(..., description="User role")
    company_id: Optional[int] = Field(None, description="Company the user acts for")

    @property
    def is_regulator(self) -> bool:
        return self.role in REGULATOR_ROLES

    @property
    def is_company_member(self) -> bool:
        return self.role in COMPANY_ROLES
