from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import Verification
from ivas.repositories.base_repository import BaseRepository


class VerificationRepository(BaseRepository[Verification]):
    """Repository for the append-only verification log."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Verification)

    async def update(self, id: int, **kwargs):
        raise NotImplementedError("Verification records are append-only")

    async def search(
        self,
        filters: Dict[str, Any],
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Verification], int]:
        """Page through verifications, newest first.

        Returns:
            Tuple of (page of records, total matching records)
        """
        query = self._apply_filters(select(Verification), filters)
        query = query.order_by(Verification.verified_at.desc(), Verification.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        total = await self.count(filters)
        return list(result.scalars().all()), total

    async def summary(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Counts per status plus the average response time."""
        filters = filters or {}
        by_status_query = self._apply_filters(
            select(Verification.status, func.count()).group_by(Verification.status), filters
        )
        by_status = {status: total for status, total in (await self.session.execute(by_status_query)).all()}

        avg_query = self._apply_filters(select(func.avg(Verification.response_time_ms)), filters)
        avg_response = (await self.session.execute(avg_query)).scalar_one()

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "average_response_time_ms": float(avg_response) if avg_response is not None else 0.0,
        }
