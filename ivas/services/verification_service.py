"""Verification engine.

Classifies a policy lookup into exactly one outcome, checked in this order:

1. no matching policy             -> ``not_found``
2. inactive, unapproved policy or
   suspended issuing company      -> ``fake``
3. expiry date before today       -> ``expired``
4. otherwise                      -> ``valid``

A holder name that does not resemble the policy holder only adds a warning
to the reason. Every lookup, whatever its outcome, is persisted as one
Verification row before the result is returned.
"""

import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from rapidfuzz import fuzz
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ivas.core.config import VerificationSettings, settings
from ivas.core.exceptions import NotFoundError, PermissionDeniedError
from ivas.database.models import Policy, Verification
from ivas.repositories.company_repository import CompanyRepository
from ivas.repositories.policy_repository import PolicyRepository
from ivas.repositories.verification_repository import VerificationRepository
from ivas.schemas.auth import CurrentUser
from ivas.schemas.enums import (
    ApprovalStatus,
    AuditSeverity,
    RegistrationStatus,
    UserRole,
    VerificationMethod,
    VerificationStatus,
)
from ivas.schemas.events import EventName, EventScope
from ivas.schemas.verification import PolicyPublicView, VerificationResult, VerificationSummary
from ivas.services.audit_service import AuditAction, AuditContext, AuditService
from ivas.services.base_service import BaseService
from ivas.services.realtime.hub import EventHub, regulators, regulators_and_company
from ivas.utils.clock import utc_today
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)

NOT_FOUND_REASON = "Policy not found in database"
VALID_REASON = "Policy verified successfully"


@dataclass(frozen=True)
class Classification:
    status: VerificationStatus
    reason: str
    confidence: float
    show_policy: bool = False


def holder_name_similarity(supplied: str, on_record: str) -> float:
    """Order-insensitive similarity of two person names, 0 to 100."""
    return fuzz.token_sort_ratio(supplied.strip().lower(), on_record.strip().lower())


def public_view(policy: Policy) -> PolicyPublicView:
    return PolicyPublicView(
        policy_number=policy.policy_number,
        holder_name=policy.holder_name,
        company_id=policy.company_id,
        company_name=policy.company.name if policy.company is not None else None,
        policy_type=policy.policy_type,
        start_date=policy.start_date,
        expiry_date=policy.expiry_date,
    )


class VerificationService(BaseService):
    """Runs and records policy lookups."""

    def __init__(
        self,
        session: AsyncSession,
        hub: Optional[EventHub] = None,
        config: Optional[VerificationSettings] = None,
        today: Callable[[], date] = utc_today,
    ):
        super().__init__(session, hub)
        self.config = config or settings.verification
        self.today = today
        self.policies = PolicyRepository(session)
        self.companies = CompanyRepository(session)
        self.repository = VerificationRepository(session)
        self.audit = AuditService(session)

    def classify(self, policy: Optional[Policy]) -> Classification:
        """Pure classification of a lookup against the current policy state."""
        if policy is None:
            return Classification(VerificationStatus.NOT_FOUND, NOT_FOUND_REASON, self.config.not_found_confidence)

        if not policy.is_active:
            return Classification(
                VerificationStatus.FAKE,
                "Policy exists but has been deactivated by the insurer",
                self.config.fake_confidence,
            )
        if policy.approval_status != ApprovalStatus.APPROVED.value:
            return Classification(
                VerificationStatus.FAKE,
                f"Policy exists but is not approved by the regulator (approval status: {policy.approval_status})",
                self.config.fake_confidence,
            )
        if policy.company is not None and policy.company.registration_status == RegistrationStatus.SUSPENDED.value:
            return Classification(
                VerificationStatus.FAKE,
                "Policy was issued by a company whose registration is suspended",
                self.config.fake_confidence,
            )

        if policy.expiry_date < self.today():
            return Classification(
                VerificationStatus.EXPIRED,
                f"Policy expired on {policy.expiry_date.isoformat()}",
                self.config.expired_confidence,
                show_policy=True,
            )

        return Classification(VerificationStatus.VALID, VALID_REASON, self.config.valid_confidence, show_policy=True)

    def _holder_warning(self, holder_name: Optional[str], policy: Optional[Policy]) -> Optional[str]:
        if not holder_name or not holder_name.strip() or policy is None:
            return None
        score = holder_name_similarity(holder_name, policy.holder_name)
        if score >= self.config.holder_name_threshold:
            return None
        return f"Warning: holder name '{holder_name.strip()}' does not match the policy holder (similarity {score:.0f}%)"

    async def verify(
        self,
        policy_number: str,
        holder_name: Optional[str] = None,
        company_id: Optional[int] = None,
        officer_id: Optional[int] = None,
        method: VerificationMethod = VerificationMethod.MANUAL,
        location: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        notes: Optional[str] = None,
        context: Optional[AuditContext] = None,
        received_at: Optional[float] = None,
    ) -> VerificationResult:
        """Classify a lookup and persist exactly one Verification row.

        Args:
            policy_number: Number as presented on the document
            holder_name: Optional name to cross check against the policy holder
            company_id: Restrict the lookup to policies of this company
            officer_id: Verifying officer, None for public lookups
            received_at: ``time.perf_counter()`` when the request arrived

        Returns:
            The recorded outcome; a missing policy is a ``not_found`` result, not an error
        """
        started = received_at if received_at is not None else time.perf_counter()
        policy_number = policy_number.strip()

        policy = await self.policies.get_by_number(policy_number, company_id)
        outcome = self.classify(policy)
        reason = outcome.reason
        warning = self._holder_warning(holder_name, policy)
        if warning:
            reason = f"{reason}. {warning}"

        fields = {
            "policy_number": policy_number,
            "holder_name": holder_name,
            "company_id": policy.company_id if policy is not None else company_id,
            "policy_id": policy.id if policy is not None else None,
            "officer_id": officer_id,
            "status": outcome.status.value,
            "reason": reason,
            "confidence_score": outcome.confidence,
            "verification_method": VerificationMethod(method).value,
            "location": location,
            "latitude": latitude,
            "longitude": longitude,
            "notes": notes,
        }
        record = await self._persist(fields, started, context)

        result = VerificationResult(
            verification_id=record.id,
            policy_number=policy_number,
            status=outcome.status,
            reason=reason,
            confidence_score=outcome.confidence,
            response_time_ms=record.response_time_ms,
            verified_at=record.verified_at,
            policy=public_view(policy) if policy is not None and outcome.show_policy else None,
        )
        LOGGER.info(
            "Policy verification recorded",
            extra={"verification_id": record.id, "status": outcome.status.value, "officer_id": officer_id},
        )
        self._announce(result, record, policy)
        return result

    async def _persist(self, fields: Dict[str, Any], started: float, context: Optional[AuditContext]) -> Verification:
        """Store the lookup and its audit entry, retrying transient store errors.

        Re-running a lookup is harmless: the classification depends only on
        current state, so a retried write records the same outcome.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(3),
            wait=wait_exponential(multiplier=0.05, max=0.5),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )
        return await retrying(self._persist_once, fields, started, context)

    async def _persist_once(self, fields: Dict[str, Any], started: float, context: Optional[AuditContext]) -> Verification:
        try:
            record = await self.repository.create(
                **fields,
                response_time_ms=int((time.perf_counter() - started) * 1000),
            )
            await self.audit.record(
                AuditAction.DOCUMENT_VERIFY if fields["officer_id"] is not None else AuditAction.DOCUMENT_VERIFY_PUBLIC,
                entity_type="verification",
                entity_id=record.id,
                user_id=fields["officer_id"],
                details={
                    "policy_number": fields["policy_number"],
                    "status": fields["status"],
                    "confidence_score": fields["confidence_score"],
                    "company_id": fields["company_id"],
                },
                severity=AuditSeverity.HIGH if fields["status"] == VerificationStatus.FAKE.value else AuditSeverity.MEDIUM,
                context=context,
            )
            await self.session.commit()
            return record
        except OperationalError as e:
            await self.session.rollback()
            LOGGER.warning(f"Transient error while recording verification: {e}")
            raise
        except Exception:
            await self.session.rollback()
            raise

    def _announce(self, result: VerificationResult, record: Verification, policy: Optional[Policy]) -> None:
        payload = {
            "verification_id": record.id,
            "policy_number": result.policy_number,
            "status": result.status.value,
            "reason": result.reason,
            "confidence_score": result.confidence_score,
            "officer_id": record.officer_id,
            "company_id": record.company_id,
            "verified_at": result.verified_at.isoformat(),
        }
        self.broadcast(EventName.NEW_VERIFICATION, payload, regulators_and_company(payload["company_id"]))
        if record.officer_id is not None:
            self.broadcast(EventName.VERIFICATION_UPDATE, payload, EventScope(user_id=record.officer_id))
        if result.status == VerificationStatus.FAKE:
            self.broadcast(
                EventName.SYSTEM_ALERT,
                {
                    "type": "fake_detected",
                    "severity": "high",
                    "message": f"Suspicious policy {result.policy_number}: {result.reason}",
                    **payload,
                },
                regulators(),
            )

    def _visibility_filters(self, actor: CurrentUser) -> Dict[str, Any]:
        if actor.is_regulator:
            return {}
        if actor.role == UserRole.OFFICER:
            return {"officer_id": actor.id}
        if actor.is_company_member and actor.company_id is not None:
            return {"company_id": actor.company_id}
        raise PermissionDeniedError("Your role cannot view verification records")

    async def list_verifications(
        self,
        actor: CurrentUser,
        status: Optional[str] = None,
        company_id: Optional[int] = None,
        policy_number: Optional[str] = None,
        officer_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Verification], int]:
        """Paginated history. Officers only ever see their own lookups."""
        filters = {
            "status": status,
            "company_id": company_id,
            "policy_number": policy_number,
            "officer_id": officer_id,
        }
        filters.update(self._visibility_filters(actor))
        return await self.repository.search(filters, skip=skip, limit=limit)

    async def get_verification(self, verification_id: int, actor: CurrentUser) -> Verification:
        record = await self.repository.get_by_id(verification_id)
        if record is None:
            raise NotFoundError("Verification", verification_id)
        for field_name, value in self._visibility_filters(actor).items():
            if getattr(record, field_name) != value:
                raise NotFoundError("Verification", verification_id)
        return record

    async def summary(self, actor: CurrentUser, company_id: Optional[int] = None) -> VerificationSummary:
        filters: Dict[str, Any] = {"company_id": company_id}
        filters.update(self._visibility_filters(actor))
        return VerificationSummary(**await self.repository.summary(filters))

    async def verify_public(
        self,
        policy_number: str,
        company_id: int,
        holder_name: Optional[str] = None,
        method: VerificationMethod = VerificationMethod.API,
        context: Optional[AuditContext] = None,
        received_at: Optional[float] = None,
    ) -> VerificationResult:
        """Anonymous lookup. The named company has to exist."""
        if await self.companies.get_by_id(company_id) is None:
            raise NotFoundError("Company", company_id)
        return await self.verify(
            policy_number,
            holder_name=holder_name,
            company_id=company_id,
            officer_id=None,
            method=method,
            context=context,
            received_at=received_at,
        )
