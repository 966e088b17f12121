"""Approval request and decision schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ivas.schemas.enums import ApprovalDecision, ApprovalEntityType, ApprovalStatus


class ApprovalSubmitRequest(BaseModel):
    entity_type: ApprovalEntityType
    entity_id: int
    notes: Optional[str] = None


class ApprovalDecisionRequest(BaseModel):
    decision: ApprovalDecision
    reason: Optional[str] = Field(None, description="Required when declining")


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: ApprovalEntityType
    entity_id: int
    status: ApprovalStatus
    requested_by: Optional[int] = None
    notes: Optional[str] = None
    approver_id: Optional[int] = None
    reason: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime
