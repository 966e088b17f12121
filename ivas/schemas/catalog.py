"""Bond and insurance type schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ivas.schemas.enums import ApprovalStatus


class BondCreateRequest(BaseModel):
    policy_id: Optional[int] = None
    bond_type: str = Field(..., min_length=1, max_length=100)
    value: Decimal = Field(..., gt=0)


class BondResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    policy_id: Optional[int] = None
    company_id: Optional[int] = None
    bond_type: str
    value: Decimal
    approval_status: ApprovalStatus
    decline_reason: Optional[str] = None
    created_at: datetime


class InsuranceTypeCreateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class InsuranceTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    description: Optional[str] = None
    company_id: Optional[int] = None
    approval_status: ApprovalStatus
    decline_reason: Optional[str] = None
    created_at: datetime
