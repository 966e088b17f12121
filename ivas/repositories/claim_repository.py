from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import Claim
from ivas.repositories.base_repository import BaseRepository
from ivas.schemas.enums import ClaimStatus


class ClaimRepository(BaseRepository[Claim]):
    """Repository for claims."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Claim)

    async def close_if_reported(
        self,
        claim_id: int,
        status: str,
        reason: Optional[str],
        decided_by: Optional[int],
        decided_at: datetime,
        settlement_amount: Optional[Decimal] = None,
    ) -> bool:
        """Apply a terminal status only while the claim is still reported.

        Returns:
            True when the transition happened
        """
        stmt = (
            update(Claim)
            .where(Claim.id == claim_id, Claim.status == ClaimStatus.REPORTED.value)
            .values(
                status=status,
                reason=reason,
                settlement_amount=settlement_amount,
                decided_by=decided_by,
                decided_at=decided_at,
                updated_at=decided_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def reload(self, claim_id: int) -> Optional[Claim]:
        return await self.session.get(Claim, claim_id, populate_existing=True)
