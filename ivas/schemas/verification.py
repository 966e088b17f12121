"""Verification request and result schemas."""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ivas.schemas.enums import VerificationMethod, VerificationStatus


class VerifyPolicyRequest(BaseModel):
    """Lookup submitted by a field officer."""

    policy_number: str = Field(..., min_length=1, max_length=100)
    holder_name: Optional[str] = Field(None, max_length=255)
    company_id: Optional[int] = Field(None, description="Restrict the lookup to one insurer")
    verification_method: VerificationMethod = VerificationMethod.MANUAL
    location: Optional[str] = Field(None, max_length=255)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    notes: Optional[str] = None


class PublicVerifyRequest(BaseModel):
    """Unauthenticated lookup; the insurer must be named."""

    policy_number: str = Field(..., min_length=1, max_length=100)
    company_id: int
    holder_name: Optional[str] = Field(None, max_length=255)
    verification_method: VerificationMethod = VerificationMethod.API


class PolicyPublicView(BaseModel):
    """Fields of a matched policy that may be shown to whoever verified it."""

    policy_number: str
    holder_name: str
    company_id: int
    company_name: Optional[str] = None
    policy_type: str
    start_date: date
    expiry_date: date


class VerificationResult(BaseModel):
    verification_id: int
    policy_number: str
    status: VerificationStatus
    reason: str
    confidence_score: float
    response_time_ms: int
    verified_at: datetime
    policy: Optional[PolicyPublicView] = None


class VerificationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    policy_number: str
    holder_name: Optional[str] = None
    company_id: Optional[int] = None
    policy_id: Optional[int] = None
    officer_id: Optional[int] = None
    status: VerificationStatus
    reason: str
    confidence_score: float
    verification_method: VerificationMethod
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    notes: Optional[str] = None
    response_time_ms: int
    verified_at: datetime


class VerificationSummary(BaseModel):
    total: int
    by_status: Dict[str, int] = Field(default_factory=dict)
    average_response_time_ms: float = 0.0


class VerificationPage(BaseModel):
    items: List[VerificationRecord]
    total: int
    skip: int
    limit: int
