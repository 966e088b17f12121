"""Company registration and status schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ivas.schemas.enums import RegistrationStatus


class CompanyRegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Registered company name")
    license_number: str = Field(..., min_length=1, max_length=100, description="Regulator issued license number")
    registration_number: Optional[str] = Field(None, description="Commercial registration number")
    contact_email: Optional[EmailStr] = Field(None, description="Contact email")
    contact_phone: Optional[str] = Field(None, description="Contact phone")
    address: Optional[str] = Field(None, description="Postal address")


class SuspendCompanyRequest(BaseModel):
    reason: str = Field(..., description="Why the company is suspended")
    duration_days: int = Field(..., description="Suspension length in days")


class CompanyNotesRequest(BaseModel):
    """Body for reinstate and renew calls."""

    notes: Optional[str] = Field(None, description="Free text shown in the approval history")


class CompanyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    license_number: str
    registration_number: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    registration_status: RegistrationStatus
    suspension_reason: Optional[str] = None
    suspension_duration: Optional[int] = None
    suspended_at: Optional[datetime] = None
    registration_expiry: Optional[datetime] = None
    is_active: bool
    created_at: datetime
