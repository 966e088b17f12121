"""Realtime event names, envelopes and delivery scopes."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, Field

from ivas.schemas.enums import UserRole
from ivas.utils.clock import utc_now


class EventName(str, Enum):
    VERIFICATION_UPDATE = "verificationUpdate"
    NEW_VERIFICATION = "newVerification"
    COMPANY_STATUS_UPDATE = "companyStatusUpdate"
    POLICY_APPROVED = "policy-approved"
    POLICY_DECLINED = "policy-declined"
    CLAIM_UPDATE = "claimUpdate"
    APPROVAL_UPDATE = "approvalUpdate"
    SYSTEM_ALERT = "systemAlert"
    HEARTBEAT = "heartbeat"


class EventScope(BaseModel):
    """Who receives an event.

    A session matches when its role is listed, its company matches or its
    user matches. An empty scope reaches every authenticated session.
    """

    roles: FrozenSet[UserRole] = Field(default_factory=frozenset)
    company_id: Optional[int] = None
    user_id: Optional[int] = None

    @property
    def is_broadcast(self) -> bool:
        return not self.roles and self.company_id is None and self.user_id is None

    def matches(self, role: UserRole, company_id: Optional[int], user_id: int) -> bool:
        if self.is_broadcast:
            return True
        if role in self.roles:
            return True
        if self.company_id is not None and company_id == self.company_id:
            return True
        return self.user_id is not None and user_id == self.user_id


class RealtimeEvent(BaseModel):
    """Frame pushed to subscribers over the websocket channel."""

    event: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
