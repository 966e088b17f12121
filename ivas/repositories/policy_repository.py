from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import Policy
from ivas.repositories.base_repository import BaseRepository


class PolicyRepository(BaseRepository[Policy]):
    """Repository for policies."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Policy)

    async def get_by_number(self, policy_number: str, company_id: Optional[int] = None) -> Optional[Policy]:
        """Look a policy up by number, optionally scoped to the owning company.

        Always reads current state, including the issuing company's status.
        """
        query = (
            select(Policy)
            .where(Policy.policy_number == policy_number)
            .execution_options(populate_existing=True)
        )
        if company_id is not None:
            query = query.where(Policy.company_id == company_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_hash(self, content_hash: str) -> Optional[Policy]:
        result = await self.session.execute(select(Policy).where(Policy.hash == content_hash))
        return result.scalar_one_or_none()

    async def search(
        self,
        company_id: Optional[int] = None,
        approval_status: Optional[str] = None,
        holder_id_number: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Policy]:
        query = self._apply_filters(
            select(Policy),
            {
                "company_id": company_id,
                "approval_status": approval_status,
                "holder_id_number": holder_id_number,
            },
        )
        query = query.order_by(Policy.created_at.desc(), Policy.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_by_numbers(self, policy_numbers: List[str]) -> List[Policy]:
        if not policy_numbers:
            return []
        result = await self.session.execute(select(Policy).where(Policy.policy_number.in_(policy_numbers)))
        return list(result.scalars().all())
