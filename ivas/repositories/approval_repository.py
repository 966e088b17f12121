from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import Approval
from ivas.repositories.base_repository import BaseRepository
from ivas.schemas.enums import ApprovalStatus


class ApprovalRepository(BaseRepository[Approval]):
    """Repository for generic approval requests."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Approval)

    async def get_pending_for(self, entity_type: str, entity_id: int) -> Optional[Approval]:
        """Return the open request for an entity, if one exists."""
        query = select(Approval).where(
            Approval.entity_type == entity_type,
            Approval.entity_id == entity_id,
            Approval.status == ApprovalStatus.PENDING.value,
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_history(self, entity_type: str, entity_id: int) -> List[Approval]:
        query = (
            select(Approval)
            .where(Approval.entity_type == entity_type, Approval.entity_id == entity_id)
            .order_by(Approval.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def decide_if_pending(
        self,
        approval_id: int,
        status: str,
        approver_id: Optional[int],
        reason: Optional[str],
        decided_at: datetime,
    ) -> bool:
        """Move a pending approval to a terminal status.

        The status check is part of the UPDATE itself, so of two concurrent
        deciders exactly one sees a matched row.

        Returns:
            True when the row was pending and is now decided
        """
        stmt = (
            update(Approval)
            .where(Approval.id == approval_id, Approval.status == ApprovalStatus.PENDING.value)
            .values(status=status, approver_id=approver_id, reason=reason, decided_at=decided_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def reload(self, approval_id: int) -> Optional[Approval]:
        return await self.session.get(Approval, approval_id, populate_existing=True)
