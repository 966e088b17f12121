"""User account schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ivas.schemas.enums import ApprovalStatus, UserRole


class UserCreateRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100, description="Unique login name")
    email: EmailStr = Field(..., description="Unique email address")
    full_name: Optional[str] = Field(None, max_length=255, description="Display name")
    role: UserRole = Field(..., description="Platform role")
    company_id: Optional[int] = Field(None, description="Company the user acts for; required for company and insurer")
    cbl_id: Optional[str] = Field(None, max_length=100, description="Regulator staff identifier")
    insurer_id: Optional[str] = Field(None, max_length=100, description="Insurer staff identifier")
    insured_id: Optional[str] = Field(
        None, max_length=100, description="Holder ID number of an insured user; must match each listed policy"
    )
    policy_numbers: Optional[List[str]] = Field(None, description="Policies held by an insured user")


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    role: UserRole
    company_id: Optional[int] = None
    cbl_id: Optional[str] = None
    insurer_id: Optional[str] = None
    insured_id: Optional[str] = None
    policy_numbers: Optional[List[str]] = None
    approval_status: ApprovalStatus
    is_active: bool
    created_at: datetime
