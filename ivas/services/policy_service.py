"""Policy submission.

A submitted policy is stored ``pending`` and active, with a regulator
approval request opened in the same transaction. It only verifies as
``valid`` after that request is approved.
"""

from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PolicyNumberConflictError,
    ValidationError,
)
from ivas.database.models import Approval, Company, Policy
from ivas.repositories.company_repository import CompanyRepository
from ivas.repositories.policy_repository import PolicyRepository
from ivas.schemas.auth import CurrentUser
from ivas.schemas.enums import ApprovalEntityType, ApprovalStatus, AuditSeverity, RegistrationStatus
from ivas.schemas.policy import PolicyCreateRequest
from ivas.services.approval_service import ApprovalService
from ivas.services.audit_service import AuditAction, AuditContext, AuditService
from ivas.services.base_service import BaseService
from ivas.services.policy_numbering_service import PolicyNumberingService
from ivas.services.realtime.hub import EventHub
from ivas.utils.hashing import policy_content_hash
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)

POLICY_APPROVAL_NOTE = "New policy requires CBL approval"


def validate_policy_terms(data: PolicyCreateRequest) -> None:
    """Field rules that a schema alone cannot express.

    Raises:
        ValidationError: Dates out of order, or coverage type and reinsurance
            number not supplied together
    """
    if data.expiry_date <= data.start_date:
        raise ValidationError("Expiry date must be after the start date")

    has_coverage = data.coverage_type is not None
    has_reinsurance = bool(data.reinsurance_number and data.reinsurance_number.strip())
    if has_coverage and not has_reinsurance:
        raise ValidationError(f"A reinsurance number is required for {data.coverage_type.value} coverage")
    if has_reinsurance and not has_coverage:
        raise ValidationError("A reinsurance number can only be given together with a coverage type")


class PolicyService(BaseService):
    """Service for submitting and querying policies."""

    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None):
        super().__init__(session, hub)
        self.repository = PolicyRepository(session)
        self.companies = CompanyRepository(session)
        self.numbering = PolicyNumberingService(session)
        self.approval_service = ApprovalService(session, hub)
        self.audit = AuditService(session)

    def _owning_company_id(self, data: PolicyCreateRequest, actor: CurrentUser) -> int:
        if actor.is_regulator:
            if data.company_id is None:
                raise ValidationError("company_id is required")
            return data.company_id
        if not actor.is_company_member or actor.company_id is None:
            raise PermissionDeniedError("Only insurers can submit policies")
        if data.company_id is not None and data.company_id != actor.company_id:
            raise PermissionDeniedError("You can only submit policies for your own company")
        return actor.company_id

    async def _approved_company(self, company_id: int) -> Company:
        company = await self.companies.get_by_id(company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        if company.registration_status != RegistrationStatus.APPROVED.value:
            raise ConflictError(
                f"Company {company.name} cannot submit policies while its registration is {company.registration_status}"
            )
        return company

    async def submit_policy(
        self,
        data: PolicyCreateRequest,
        actor: CurrentUser,
        context: Optional[AuditContext] = None,
    ) -> Tuple[Policy, Approval]:
        """Store a new policy and open its approval request.

        Raises:
            ValidationError: Invalid dates or coverage terms
            PermissionDeniedError: Caller may not submit for the company
            ConflictError: Company not approved
            PolicyNumberConflictError: Number or content hash already registered
            RetryableAllocationError: Number allocation kept failing
        """
        validate_policy_terms(data)
        company_id = self._owning_company_id(data, actor)
        await self._approved_company(company_id)

        explicit_number = data.policy_number.strip() if data.policy_number and data.policy_number.strip() else None
        if explicit_number is not None and await self.repository.get_by_number(explicit_number) is not None:
            raise PolicyNumberConflictError(explicit_number)

        # Allocation opens the transaction that the rest of the submission joins
        allocated = None
        if explicit_number is None:
            allocated = await self.numbering.allocate_with_retry(company_id)
        policy_number = explicit_number or allocated.policy_number

        content_hash = policy_content_hash(policy_number, data.holder_name.strip(), data.expiry_date, company_id)
        async with self.unit_of_work():
            if await self.repository.get_by_hash(content_hash) is not None:
                raise PolicyNumberConflictError(policy_number, retryable=allocated is not None)
            try:
                policy = await self.repository.create(
                    policy_number=policy_number,
                    holder_name=data.holder_name.strip(),
                    holder_id_number=data.holder_id_number.strip(),
                    holder_phone=data.holder_phone,
                    holder_email=data.holder_email,
                    company_id=company_id,
                    policy_type=data.policy_type,
                    coverage_type=data.coverage_type.value if data.coverage_type else None,
                    reinsurance_number=data.reinsurance_number.strip() if data.reinsurance_number else None,
                    coverage_amount=data.coverage_amount,
                    premium_amount=data.premium_amount,
                    start_date=data.start_date,
                    expiry_date=data.expiry_date,
                    approval_status=ApprovalStatus.PENDING.value,
                    is_active=True,
                    policy_year=allocated.year if allocated else None,
                    policy_counter=allocated.counter if allocated else None,
                    hash=content_hash,
                    created_by=actor.id,
                )
            except IntegrityError as e:
                raise PolicyNumberConflictError(policy_number, retryable=allocated is not None) from e

            approval = await self.approval_service.open_request(
                ApprovalEntityType.POLICY,
                policy,
                requested_by=actor.id,
                notes=POLICY_APPROVAL_NOTE,
                context=context,
            )
            await self.audit.record(
                AuditAction.POLICY_CREATE,
                entity_type="policy",
                entity_id=policy.id,
                user_id=actor.id,
                details={"policy_number": policy_number, "company_id": company_id, "approval_id": approval.id},
                context=context,
            )

        LOGGER.info(
            "Policy submitted for approval",
            extra={"policy_id": policy.id, "policy_number": policy_number, "approval_id": approval.id},
        )
        return policy, approval

    def _check_visible(self, policy: Policy, actor: CurrentUser) -> None:
        if actor.is_regulator or actor.role.value == "officer":
            return
        if actor.is_company_member and actor.company_id == policy.company_id:
            return
        raise NotFoundError("Policy", policy.id)

    async def get_policy(self, policy_id: int, actor: CurrentUser) -> Policy:
        policy = await self.repository.get_by_id(policy_id)
        if policy is None:
            raise NotFoundError("Policy", policy_id)
        self._check_visible(policy, actor)
        return policy

    async def list_policies(
        self,
        actor: CurrentUser,
        company_id: Optional[int] = None,
        approval_status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Policy], int]:
        if actor.is_company_member:
            if actor.company_id is None:
                raise PermissionDeniedError("Your account is not linked to a company")
            company_id = actor.company_id
        elif not actor.is_regulator:
            raise PermissionDeniedError("Your role cannot list policies")
        items = await self.repository.search(company_id=company_id, approval_status=approval_status, skip=skip, limit=limit)
        total = await self.repository.count({"company_id": company_id, "approval_status": approval_status})
        return items, total

    async def deactivate_policy(
        self,
        policy_id: int,
        actor: CurrentUser,
        reason: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Policy:
        """Withdraw a policy; later lookups classify it as fake."""
        async with self.unit_of_work():
            policy = await self.get_policy(policy_id, actor)
            if not (actor.is_regulator or actor.company_id == policy.company_id):
                raise PermissionDeniedError("Only the issuing company can deactivate this policy")
            policy.is_active = False
            await self.audit.record(
                AuditAction.POLICY_DEACTIVATE,
                entity_type="policy",
                entity_id=policy.id,
                user_id=actor.id,
                details={"policy_number": policy.policy_number, "reason": reason},
                severity=AuditSeverity.HIGH,
                context=context,
            )
        LOGGER.info("Policy deactivated", extra={"policy_id": policy_id})
        return policy
