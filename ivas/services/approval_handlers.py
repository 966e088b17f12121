"""Per entity kind side effects of approval decisions.

The approval state machine itself is uniform; each handler only knows how to
load its entity, reflect a decision onto the entity's own status fields and
describe the resulting broadcast.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.exceptions import InvalidTransitionError
from ivas.database.models import Approval, Bond, Company, InsuranceType, Policy, User
from ivas.schemas.enums import ApprovalEntityType, ApprovalStatus, RegistrationStatus
from ivas.schemas.events import EventName, EventScope
from ivas.services.realtime.hub import regulators, regulators_and_company

REGISTRATION_PERIOD = timedelta(days=365)


class ApprovalHandler:
    """Default behaviour for entities carrying ``approval_status``/``decline_reason``."""

    entity_type: ApprovalEntityType
    model: Type[Any]
    label: str

    async def load(self, session: AsyncSession, entity_id: int) -> Optional[Any]:
        return await session.get(self.model, entity_id, populate_existing=True)

    def check_submittable(self, entity: Any) -> None:
        """Raise when a new request may not be opened for the entity."""

    def apply_submitted(self, entity: Any, approval: Approval) -> None:
        entity.approval_status = ApprovalStatus.PENDING.value

    def apply_approved(self, entity: Any, approval: Approval, approver_id: Optional[int], now: datetime) -> None:
        entity.approval_status = ApprovalStatus.APPROVED.value
        entity.decline_reason = None

    def apply_declined(
        self, entity: Any, approval: Approval, approver_id: Optional[int], reason: str, now: datetime
    ) -> None:
        entity.approval_status = ApprovalStatus.DECLINED.value
        entity.decline_reason = reason

    def company_id(self, entity: Any) -> Optional[int]:
        return getattr(entity, "company_id", None)

    def event_name(self, status: ApprovalStatus) -> EventName:
        return EventName.APPROVAL_UPDATE

    def payload(self, entity: Any, approval: Approval) -> Dict[str, Any]:
        return {
            "approval_id": approval.id,
            "entity_type": self.entity_type.value,
            "entity_id": approval.entity_id,
            "status": approval.status,
            "reason": approval.reason,
            "company_id": self.company_id(entity),
        }

    def scope(self, entity: Any) -> EventScope:
        return regulators_and_company(self.company_id(entity))


class InsurerApprovalHandler(ApprovalHandler):
    """Company registration. Decisions drive ``registration_status``."""

    entity_type = ApprovalEntityType.INSURER
    model = Company
    label = "Company"

    def check_submittable(self, entity: Company) -> None:
        if entity.registration_status == RegistrationStatus.SUSPENDED.value:
            raise InvalidTransitionError(
                "Company",
                entity.id,
                entity.registration_status,
                RegistrationStatus.PENDING.value,
                message="Suspended companies must be reinstated before requesting registration",
            )

    def apply_submitted(self, entity: Company, approval: Approval) -> None:
        entity.registration_status = RegistrationStatus.PENDING.value

    def apply_approved(self, entity: Company, approval: Approval, approver_id: Optional[int], now: datetime) -> None:
        entity.registration_status = RegistrationStatus.APPROVED.value
        entity.registration_expiry = now + REGISTRATION_PERIOD
        entity.admin_approved_by = approver_id
        entity.suspension_reason = None
        entity.suspension_duration = None
        entity.suspended_at = None

    def apply_declined(
        self, entity: Company, approval: Approval, approver_id: Optional[int], reason: str, now: datetime
    ) -> None:
        entity.registration_status = RegistrationStatus.SUSPENDED.value
        entity.suspension_reason = reason
        entity.suspended_at = now

    def company_id(self, entity: Company) -> Optional[int]:
        return entity.id

    def event_name(self, status: ApprovalStatus) -> EventName:
        return EventName.COMPANY_STATUS_UPDATE

    def payload(self, entity: Company, approval: Approval) -> Dict[str, Any]:
        return {
            **super().payload(entity, approval),
            "company_name": entity.name,
            "registration_status": entity.registration_status,
        }


class PolicyApprovalHandler(ApprovalHandler):
    entity_type = ApprovalEntityType.POLICY
    model = Policy
    label = "Policy"

    def check_submittable(self, entity: Policy) -> None:
        if entity.approval_status == ApprovalStatus.APPROVED.value:
            raise InvalidTransitionError(
                "Policy",
                entity.id,
                entity.approval_status,
                ApprovalStatus.PENDING.value,
                message=f"Policy {entity.policy_number} is already approved",
            )

    def apply_approved(self, entity: Policy, approval: Approval, approver_id: Optional[int], now: datetime) -> None:
        super().apply_approved(entity, approval, approver_id, now)
        entity.approval_date = now
        entity.approver_id = approver_id

    def apply_declined(
        self, entity: Policy, approval: Approval, approver_id: Optional[int], reason: str, now: datetime
    ) -> None:
        super().apply_declined(entity, approval, approver_id, reason, now)
        entity.approval_date = None
        entity.approver_id = approver_id

    def event_name(self, status: ApprovalStatus) -> EventName:
        if status == ApprovalStatus.APPROVED:
            return EventName.POLICY_APPROVED
        return EventName.POLICY_DECLINED

    def payload(self, entity: Policy, approval: Approval) -> Dict[str, Any]:
        return {
            **super().payload(entity, approval),
            "policy_id": entity.id,
            "policy_number": entity.policy_number,
            "approval_status": entity.approval_status,
        }


class UserApprovalHandler(ApprovalHandler):
    entity_type = ApprovalEntityType.USER
    model = User
    label = "User"

    def scope(self, entity: User) -> EventScope:
        return regulators().model_copy(update={"user_id": entity.id})


class BondApprovalHandler(ApprovalHandler):
    entity_type = ApprovalEntityType.BOND
    model = Bond
    label = "Bond"


class InsuranceTypeApprovalHandler(ApprovalHandler):
    entity_type = ApprovalEntityType.TYPE
    model = InsuranceType
    label = "Insurance type"


APPROVAL_HANDLERS: Dict[ApprovalEntityType, ApprovalHandler] = {
    handler.entity_type: handler
    for handler in (
        InsurerApprovalHandler(),
        PolicyApprovalHandler(),
        UserApprovalHandler(),
        BondApprovalHandler(),
        InsuranceTypeApprovalHandler(),
    )
}


def handler_for(entity_type: ApprovalEntityType | str) -> ApprovalHandler:
    return APPROVAL_HANDLERS[ApprovalEntityType(entity_type)]
