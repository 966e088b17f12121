from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import Approval
from ivas.repositories.claim_repository import ClaimRepository
from ivas.repositories.company_repository import CompanyRepository
from ivas.repositories.policy_repository import PolicyRepository
from ivas.repositories.verification_repository import VerificationRepository
from ivas.schemas.dashboard import DashboardStats
from ivas.schemas.enums import ApprovalStatus


class DashboardService:
    """Read-only overview counts for regulators."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.companies = CompanyRepository(session)
        self.policies = PolicyRepository(session)
        self.claims = ClaimRepository(session)
        self.verifications = VerificationRepository(session)

    async def _pending_approvals(self) -> dict:
        query = (
            select(Approval.entity_type, func.count())
            .where(Approval.status == ApprovalStatus.PENDING.value)
            .group_by(Approval.entity_type)
        )
        result = await self.session.execute(query)
        return {entity_type: total for entity_type, total in result.all()}

    async def stats(self) -> DashboardStats:
        return DashboardStats(
            companies=await self.companies.count_by("registration_status"),
            policies=await self.policies.count_by("approval_status"),
            claims=await self.claims.count_by("status"),
            verifications=await self.verifications.count_by("status"),
            pending_approvals=await self._pending_approvals(),
        )
