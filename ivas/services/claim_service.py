"""Claim lifecycle engine.

Claims start ``reported`` and end ``settled`` or ``denied``. A closed claim
is never reopened; a dispute is a new claim pointing at the closed one
through ``previous_claim_id``.
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ivas.database.models import Claim, Policy
from ivas.repositories.claim_repository import ClaimRepository
from ivas.repositories.company_repository import CompanyRepository
from ivas.repositories.policy_repository import PolicyRepository
from ivas.repositories.user_repository import UserRepository
from ivas.schemas.auth import CurrentUser
from ivas.schemas.enums import AuditSeverity, ClaimStatus, RegistrationStatus, UserRole
from ivas.schemas.events import EventName
from ivas.services.audit_service import AuditAction, AuditContext, AuditService
from ivas.services.base_service import BaseService
from ivas.services.realtime.hub import EventHub, regulators_and_company
from ivas.utils.clock import utc_now
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_SETTLEMENT_NOTE = "Claim settled by insurer"
TERMINAL_STATUSES = {ClaimStatus.SETTLED.value, ClaimStatus.DENIED.value}


class ClaimService(BaseService):
    """Service for reporting and closing claims."""

    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None):
        super().__init__(session, hub)
        self.repository = ClaimRepository(session)
        self.policies = PolicyRepository(session)
        self.companies = CompanyRepository(session)
        self.users = UserRepository(session)
        self.audit = AuditService(session)

    async def _check_reporter(self, policy: Policy, actor: CurrentUser) -> Optional[int]:
        """Make sure the caller may claim against the policy; returns the insured id."""
        if actor.is_regulator:
            return None
        if actor.is_company_member:
            if actor.company_id != policy.company_id:
                raise PermissionDeniedError("Policy does not belong to your company")
            return None
        if actor.role == UserRole.INSURED:
            user = await self.users.get_by_id(actor.id)
            if user is None or policy.policy_number not in (user.policy_numbers or []):
                raise PermissionDeniedError("Policy is not linked to your account")
            return actor.id
        raise PermissionDeniedError("Your role cannot report claims")

    async def _check_previous(self, previous_claim_id: Optional[int], policy_id: int) -> None:
        if previous_claim_id is None:
            return
        previous = await self.repository.get_by_id(previous_claim_id)
        if previous is None:
            raise NotFoundError("Claim", previous_claim_id)
        if previous.policy_id != policy_id:
            raise ValidationError("A disputed claim must belong to the same policy")
        if previous.status not in TERMINAL_STATUSES:
            raise ValidationError("Only settled or denied claims can be disputed")

    async def _create(
        self,
        policy: Policy,
        description: str,
        insured_id: Optional[int],
        reporter_id: Optional[int],
        insurance_type: Optional[str],
        attachment_url: Optional[str],
        uploads: Optional[List[str]],
        previous_claim_id: Optional[int],
        context: Optional[AuditContext],
    ) -> Claim:
        if not description or not description.strip():
            raise ValidationError("A claim description is required")

        async with self.unit_of_work():
            await self._check_previous(previous_claim_id, policy.id)
            claim = await self.repository.create(
                policy_id=policy.id,
                insured_id=insured_id,
                insurer_id=policy.company_id,
                description=description.strip(),
                status=ClaimStatus.REPORTED.value,
                insurance_type=insurance_type or policy.policy_type,
                attachment_url=attachment_url,
                uploads=uploads,
                previous_claim_id=previous_claim_id,
            )
            await self.audit.record(
                AuditAction.CLAIM_REPORT,
                entity_type="claim",
                entity_id=claim.id,
                user_id=reporter_id,
                details={"policy_id": policy.id, "policy_number": policy.policy_number, "previous_claim_id": previous_claim_id},
                context=context,
            )

        LOGGER.info("Claim reported", extra={"claim_id": claim.id, "policy_id": policy.id})
        self._announce(claim)
        return claim

    async def report(
        self,
        policy_id: int,
        description: str,
        actor: CurrentUser,
        insurance_type: Optional[str] = None,
        attachment_url: Optional[str] = None,
        uploads: Optional[List[str]] = None,
        previous_claim_id: Optional[int] = None,
        context: Optional[AuditContext] = None,
    ) -> Claim:
        """Report a claim against an existing policy.

        The policy does not need to be active; incidents that happened while
        it was in force can still be claimed after it expires.

        Raises:
            NotFoundError: Unknown policy or disputed claim
            PermissionDeniedError: Policy belongs to another company or insured
            ValidationError: Missing description or invalid dispute reference
        """
        policy = await self.policies.get_by_id(policy_id)
        if policy is None:
            raise NotFoundError("Policy", policy_id)
        insured_id = await self._check_reporter(policy, actor)
        return await self._create(
            policy,
            description,
            insured_id=insured_id,
            reporter_id=actor.id,
            insurance_type=insurance_type,
            attachment_url=attachment_url,
            uploads=uploads,
            previous_claim_id=previous_claim_id,
            context=context,
        )

    async def report_public(
        self,
        policy_number: str,
        company_id: int,
        description: str,
        insurance_type: Optional[str] = None,
        attachment_url: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Claim:
        """File a claim without an account, naming the policy and its insurer."""
        company = await self.companies.get_by_id(company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        if company.registration_status != RegistrationStatus.APPROVED.value:
            raise ConflictError(f"Company {company.name} is not accepting claims (registration {company.registration_status})")

        policy = await self.policies.get_by_number(policy_number.strip(), company_id)
        if policy is None:
            raise NotFoundError("Policy", policy_number, message=f"Policy {policy_number} not found for this company")

        return await self._create(
            policy,
            description,
            insured_id=None,
            reporter_id=None,
            insurance_type=insurance_type,
            attachment_url=attachment_url,
            uploads=None,
            previous_claim_id=None,
            context=context,
        )

    async def _load_for_decision(self, claim_id: int, actor: CurrentUser) -> Claim:
        claim = await self.repository.get_by_id(claim_id)
        if claim is None:
            raise NotFoundError("Claim", claim_id)
        if not actor.is_regulator and actor.company_id != claim.insurer_id:
            raise PermissionDeniedError("Only the insurer of the policy can decide this claim")
        return claim

    async def _close(
        self,
        claim_id: int,
        target: ClaimStatus,
        actor: CurrentUser,
        reason: str,
        settlement_amount: Optional[Decimal],
        context: Optional[AuditContext],
    ) -> Claim:
        verb = "settled" if target == ClaimStatus.SETTLED else "denied"
        async with self.unit_of_work():
            claim = await self._load_for_decision(claim_id, actor)
            closed = await self.repository.close_if_reported(
                claim_id,
                target.value,
                reason=reason,
                decided_by=actor.id,
                decided_at=utc_now(),
                settlement_amount=settlement_amount,
            )
            if not closed:
                current = await self.repository.reload(claim_id)
                raise InvalidTransitionError(
                    "Claim",
                    claim_id,
                    current.status if current is not None else claim.status,
                    target.value,
                    message=f"Only reported claims can be {verb}",
                )
            claim = await self.repository.reload(claim_id)
            await self.audit.record(
                AuditAction.CLAIM_SETTLE if target == ClaimStatus.SETTLED else AuditAction.CLAIM_DENY,
                entity_type="claim",
                entity_id=claim_id,
                user_id=actor.id,
                details={
                    "reason": reason,
                    "settlement_amount": str(settlement_amount) if settlement_amount is not None else None,
                },
                severity=AuditSeverity.HIGH,
                context=context,
            )

        LOGGER.info(f"Claim {verb}", extra={"claim_id": claim_id, "decided_by": actor.id})
        self._announce(claim)
        return claim

    async def settle(
        self,
        claim_id: int,
        settlement_amount: Decimal,
        notes: Optional[str],
        actor: CurrentUser,
        context: Optional[AuditContext] = None,
    ) -> Claim:
        """Close a reported claim with a payout.

        Raises:
            InvalidTransitionError: The claim is already settled or denied
        """
        if settlement_amount is None or Decimal(settlement_amount) < 0:
            raise ValidationError("Settlement amount must be zero or greater")
        note = notes.strip() if notes and notes.strip() else DEFAULT_SETTLEMENT_NOTE
        return await self._close(claim_id, ClaimStatus.SETTLED, actor, note, Decimal(settlement_amount), context)

    async def deny(
        self,
        claim_id: int,
        reason: Optional[str],
        actor: CurrentUser,
        context: Optional[AuditContext] = None,
    ) -> Claim:
        """Close a reported claim without payout. A reason is mandatory.

        Raises:
            ValidationError: Missing reason
            InvalidTransitionError: The claim is already settled or denied
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required when denying a claim")
        return await self._close(claim_id, ClaimStatus.DENIED, actor, reason.strip(), None, context)

    def _announce(self, claim: Claim) -> None:
        scope = regulators_and_company(claim.insurer_id)
        if claim.insured_id is not None:
            scope = scope.model_copy(update={"user_id": claim.insured_id})
        self.broadcast(
            EventName.CLAIM_UPDATE,
            {
                "claim_id": claim.id,
                "policy_id": claim.policy_id,
                "status": claim.status,
                "reason": claim.reason,
                "settlement_amount": str(claim.settlement_amount) if claim.settlement_amount is not None else None,
                "company_id": claim.insurer_id,
            },
            scope,
        )

    async def get_claim(self, claim_id: int, actor: CurrentUser) -> Claim:
        claim = await self.repository.get_by_id(claim_id)
        if claim is None or not self._can_view(claim, actor):
            raise NotFoundError("Claim", claim_id)
        return claim

    def _can_view(self, claim: Claim, actor: CurrentUser) -> bool:
        if actor.is_regulator:
            return True
        if actor.is_company_member:
            return claim.insurer_id == actor.company_id
        return claim.insured_id == actor.id

    async def list_claims(
        self,
        actor: CurrentUser,
        status: Optional[str] = None,
        policy_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Claim], int]:
        filters = {"status": status, "policy_id": policy_id}
        if actor.is_company_member:
            if actor.company_id is None:
                raise PermissionDeniedError("Your account is not linked to a company")
            filters["insurer_id"] = actor.company_id
        elif not actor.is_regulator:
            filters["insured_id"] = actor.id
        items = await self.repository.get_all(skip=skip, limit=limit, filters=filters)
        total = await self.repository.count(filters)
        return items, total
