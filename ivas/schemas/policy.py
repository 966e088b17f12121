"""Policy submission and numbering schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ivas.schemas.enums import ApprovalStatus, CoverageType


class PolicyCreateRequest(BaseModel):
    """Policy submitted by an insurer for regulator approval.

    ``policy_number`` is normally left empty so the allocator assigns one.
    Date ordering and the coverage/reinsurance pairing are enforced by the
    policy service, which answers with a displayable reason.
    """

    policy_number: Optional[str] = Field(None, max_length=100, description="Explicit policy number")
    company_id: Optional[int] = Field(None, description="Owning company; defaults to the caller's company")
    holder_name: str = Field(..., min_length=1, max_length=255)
    holder_id_number: str = Field(..., min_length=1, max_length=100)
    holder_phone: Optional[str] = None
    holder_email: Optional[EmailStr] = None
    policy_type: str = Field(..., min_length=1, max_length=100)
    coverage_type: Optional[CoverageType] = None
    reinsurance_number: Optional[str] = Field(None, max_length=100)
    coverage_amount: Optional[Decimal] = Field(None, ge=0)
    premium_amount: Optional[Decimal] = Field(None, ge=0)
    start_date: date
    expiry_date: date


class PolicyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    policy_number: str
    holder_name: str
    holder_id_number: str
    company_id: int
    policy_type: str
    coverage_type: Optional[CoverageType] = None
    reinsurance_number: Optional[str] = None
    coverage_amount: Optional[Decimal] = None
    premium_amount: Optional[Decimal] = None
    start_date: date
    expiry_date: date
    approval_status: ApprovalStatus
    decline_reason: Optional[str] = None
    is_active: bool
    hash: str
    created_at: datetime


class PolicySubmission(BaseModel):
    """Created policy together with the approval request it opened."""

    policy: PolicyResponse
    approval_id: int


class PolicyNumberPreview(BaseModel):
    company_id: int
    year: int
    current_counter: int
    next_policy_number: str


class NumberingYearStats(BaseModel):
    year: int
    allocated: int
    last_policy_number: Optional[str] = None


class NumberingStats(BaseModel):
    company_id: int
    license_code: str
    years: List[NumberingYearStats] = Field(default_factory=list)
