"""Claim schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ivas.schemas.enums import ClaimStatus


class ClaimReportRequest(BaseModel):
    policy_id: int
    description: str = Field(..., min_length=1)
    insurance_type: Optional[str] = None
    attachment_url: Optional[str] = Field(None, max_length=500, description="URL returned by file storage")
    uploads: Optional[List[str]] = None
    previous_claim_id: Optional[int] = Field(None, description="Earlier terminal claim this one disputes")


class PublicClaimRequest(BaseModel):
    """Claim filed without an account, located by policy number."""

    policy_number: str = Field(..., min_length=1)
    company_id: int
    description: str = Field(..., min_length=1)
    insurance_type: Optional[str] = None
    attachment_url: Optional[str] = Field(None, max_length=500)


class SettleClaimRequest(BaseModel):
    settlement_amount: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class DenyClaimRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Required; shown to the claimant")


class ClaimResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    policy_id: int
    insured_id: Optional[int] = None
    insurer_id: int
    description: str
    status: ClaimStatus
    reason: Optional[str] = None
    settlement_amount: Optional[Decimal] = None
    insurance_type: Optional[str] = None
    attachment_url: Optional[str] = None
    uploads: Optional[List[str]] = None
    previous_claim_id: Optional[int] = None
    decided_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    created_at: datetime
