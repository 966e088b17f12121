from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import AuditLog
from ivas.repositories.base_repository import BaseRepository


class AuditRepository(BaseRepository[AuditLog]):
    """Repository for audit entries. Exposes no update or delete path."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AuditLog)

    async def update(self, id: int, **kwargs):
        raise NotImplementedError("Audit log entries are append-only")

    async def search(
        self,
        filters: Dict[str, Any],
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[AuditLog], int]:
        query = self._apply_filters(select(AuditLog), filters)
        if since is not None:
            query = query.where(AuditLog.created_at >= since)
        if until is not None:
            query = query.where(AuditLog.created_at <= until)

        total_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(total_query)).scalar_one()

        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total
