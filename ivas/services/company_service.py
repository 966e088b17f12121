"""Company registration lifecycle.

Registration and renewal go through the generic approval workflow.
Suspension is an immediate regulator action that bypasses the pending
state; reinstatement is its explicit counterpart. Both leave a decided
``insurer`` approval row behind so the registration history stays complete.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ivas.database.models import Approval, Company
from ivas.repositories.approval_repository import ApprovalRepository
from ivas.repositories.company_repository import CompanyRepository
from ivas.schemas.company import CompanyRegisterRequest
from ivas.schemas.enums import ApprovalEntityType, ApprovalStatus, AuditSeverity, RegistrationStatus
from ivas.schemas.events import EventName
from ivas.services.approval_handlers import REGISTRATION_PERIOD
from ivas.services.approval_service import ApprovalService
from ivas.services.audit_service import AuditAction, AuditContext, AuditService
from ivas.services.base_service import BaseService
from ivas.services.policy_numbering_service import license_code
from ivas.services.realtime.hub import EventHub, regulators_and_company
from ivas.utils.clock import as_utc, utc_now
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CompanyService(BaseService):
    """Service for company registration, suspension and reinstatement."""

    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None):
        super().__init__(session, hub)
        self.repository = CompanyRepository(session)
        self.approvals = ApprovalRepository(session)
        self.approval_service = ApprovalService(session, hub)
        self.audit = AuditService(session)

    async def get_company(self, company_id: int) -> Company:
        company = await self.repository.get_by_id(company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        return company

    async def list_companies(
        self, registration_status: Optional[str] = None, skip: int = 0, limit: int = 50
    ) -> Tuple[List[Company], int]:
        filters = {"registration_status": registration_status}
        items = await self.repository.get_all(skip=skip, limit=limit, filters=filters)
        return items, await self.repository.count(filters)

    async def register(
        self,
        data: CompanyRegisterRequest,
        requested_by: Optional[int] = None,
        context: Optional[AuditContext] = None,
    ) -> Tuple[Company, Approval]:
        """Create a pending company and its registration request.

        License numbers are stored in their canonical ``license_code`` form,
        so ``lic 0042`` and ``LIC-0042`` count as the same license.

        Raises:
            ValidationError: The license number has no letters or digits
            ConflictError: The license number is already registered
        """
        license_number = license_code(data.license_number)
        if not license_number:
            raise ValidationError("License number must contain letters or digits")
        async with self.unit_of_work():
            if await self.repository.get_by_license_number(license_number) is not None:
                raise ConflictError(f"A company with license number {license_number} is already registered")
            try:
                company = await self.repository.create(
                    name=data.name.strip(),
                    license_number=license_number,
                    registration_number=data.registration_number,
                    contact_email=data.contact_email,
                    contact_phone=data.contact_phone,
                    address=data.address,
                    registration_status=RegistrationStatus.PENDING.value,
                )
            except IntegrityError as e:
                raise ConflictError(
                    f"A company with license number {license_number} is already registered", original_error=e
                ) from e

            approval = await self.approval_service.open_request(
                ApprovalEntityType.INSURER,
                company,
                requested_by=requested_by,
                notes="New company registration",
                context=context,
            )
            await self.audit.record(
                AuditAction.COMPANY_REGISTER,
                entity_type="company",
                entity_id=company.id,
                user_id=requested_by,
                details={"name": company.name, "license_number": license_number, "approval_id": approval.id},
                context=context,
            )

        LOGGER.info("Company registered", extra={"company_id": company.id, "license_number": license_number})
        return company, approval

    async def renew_registration(
        self,
        company_id: int,
        requested_by: Optional[int] = None,
        notes: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Approval:
        """Ask the regulator to renew a registration; the company goes back to pending.

        Raises:
            InvalidTransitionError: The company is suspended
            DuplicatePendingError: A registration request is already open
        """
        async with self.unit_of_work():
            company = await self.get_company(company_id)
            approval = await self.approval_service.open_request(
                ApprovalEntityType.INSURER,
                company,
                requested_by=requested_by,
                notes=notes or "Registration renewal",
                context=context,
            )
            await self.audit.record(
                AuditAction.COMPANY_RENEW,
                entity_type="company",
                entity_id=company.id,
                user_id=requested_by,
                details={"approval_id": approval.id, "notes": notes},
                context=context,
            )

        self._announce(company)
        return approval

    async def _record_decision(
        self,
        company: Company,
        status: ApprovalStatus,
        approver_id: Optional[int],
        reason: Optional[str],
        now: datetime,
    ) -> Approval:
        """Close any open registration request, or log a decided one."""
        pending = await self.approvals.get_pending_for(ApprovalEntityType.INSURER.value, company.id)
        if pending is not None:
            await self.approvals.decide_if_pending(pending.id, status.value, approver_id, reason, now)
            return await self.approvals.reload(pending.id)
        return await self.approvals.create(
            entity_type=ApprovalEntityType.INSURER.value,
            entity_id=company.id,
            status=status.value,
            approver_id=approver_id,
            reason=reason,
            decided_at=now,
        )

    async def suspend(
        self,
        company_id: int,
        reason: Optional[str],
        duration_days: Optional[int],
        actor_id: Optional[int],
        context: Optional[AuditContext] = None,
    ) -> Company:
        """Suspend a company immediately.

        Raises:
            ValidationError: Missing reason or a duration below one day
            InvalidTransitionError: The company is already suspended
        """
        if not reason or not reason.strip():
            raise ValidationError("A suspension reason is required")
        if isinstance(duration_days, bool) or not isinstance(duration_days, int) or duration_days < 1:
            raise ValidationError("Suspension duration must be a whole number of days, at least 1")

        now = utc_now()
        async with self.unit_of_work():
            company = await self.get_company(company_id)
            if company.registration_status == RegistrationStatus.SUSPENDED.value:
                raise InvalidTransitionError(
                    "Company",
                    company_id,
                    company.registration_status,
                    RegistrationStatus.SUSPENDED.value,
                    message=f"Company {company.name} is already suspended",
                )

            company.registration_status = RegistrationStatus.SUSPENDED.value
            company.suspension_reason = reason.strip()
            company.suspension_duration = duration_days
            company.suspended_at = now
            approval = await self._record_decision(company, ApprovalStatus.DECLINED, actor_id, reason.strip(), now)
            await self.audit.record(
                AuditAction.COMPANY_SUSPEND,
                entity_type="company",
                entity_id=company.id,
                user_id=actor_id,
                details={"reason": reason.strip(), "duration_days": duration_days, "approval_id": approval.id},
                severity=AuditSeverity.HIGH,
                context=context,
            )

        LOGGER.warning("Company suspended", extra={"company_id": company_id, "duration_days": duration_days})
        self._announce(company)
        return company

    async def reinstate(
        self,
        company_id: int,
        actor_id: Optional[int],
        notes: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Company:
        """Lift a suspension.

        Raises:
            InvalidTransitionError: The company is not suspended
        """
        now = utc_now()
        async with self.unit_of_work():
            company = await self.get_company(company_id)
            if company.registration_status != RegistrationStatus.SUSPENDED.value:
                raise InvalidTransitionError(
                    "Company",
                    company_id,
                    company.registration_status,
                    RegistrationStatus.APPROVED.value,
                    message=f"Company {company.name} is not suspended",
                )

            company.registration_status = RegistrationStatus.APPROVED.value
            company.suspension_reason = None
            company.suspension_duration = None
            company.suspended_at = None
            company.admin_approved_by = actor_id
            if company.registration_expiry is None or as_utc(company.registration_expiry) < now:
                company.registration_expiry = now + REGISTRATION_PERIOD
            approval = await self._record_decision(company, ApprovalStatus.APPROVED, actor_id, notes, now)
            await self.audit.record(
                AuditAction.COMPANY_REINSTATE,
                entity_type="company",
                entity_id=company.id,
                user_id=actor_id,
                details={"notes": notes, "approval_id": approval.id},
                context=context,
            )

        LOGGER.info("Company reinstated", extra={"company_id": company_id})
        self._announce(company)
        return company

    async def expire_lapsed_registrations(self, actor_id: Optional[int] = None) -> List[Company]:
        """Mark approved companies whose registration period ended as expired."""
        now = utc_now()
        expired: List[Company] = []
        async with self.unit_of_work():
            for company in await self.repository.get_lapsed(now):
                company.registration_status = RegistrationStatus.EXPIRED.value
                expired.append(company)
                await self.audit.record(
                    AuditAction.COMPANY_EXPIRE,
                    entity_type="company",
                    entity_id=company.id,
                    user_id=actor_id,
                    details={"registration_expiry": company.registration_expiry.isoformat()},
                )

        for company in expired:
            self._announce(company)
        return expired

    def _announce(self, company: Company) -> None:
        self.broadcast(
            EventName.COMPANY_STATUS_UPDATE,
            {
                "company_id": company.id,
                "company_name": company.name,
                "registration_status": company.registration_status,
                "suspension_reason": company.suspension_reason,
                "suspension_duration": company.suspension_duration,
                "suspension_ends_at": suspension_ends_at(company),
            },
            regulators_and_company(company.id),
        )


def suspension_ends_at(company: Company) -> Optional[str]:
    """When a suspension lapses; nothing acts on it automatically."""
    if company.suspended_at is None or not company.suspension_duration:
        return None
    return (as_utc(company.suspended_at) + timedelta(days=company.suspension_duration)).isoformat()
