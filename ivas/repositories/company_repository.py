from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import Company
from ivas.repositories.base_repository import BaseRepository
from ivas.schemas.enums import RegistrationStatus


class CompanyRepository(BaseRepository[Company]):
    """Repository for registered insurance companies."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Company)

    async def get_by_license_number(self, license_number: str) -> Optional[Company]:
        query = select(Company).where(Company.license_number == license_number)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_lapsed(self, now: datetime) -> List[Company]:
        """Approved companies whose registration period ended before ``now``."""
        query = (
            select(Company)
            .where(
                Company.registration_status == RegistrationStatus.APPROVED.value,
                Company.registration_expiry.is_not(None),
                Company.registration_expiry < now,
            )
            .order_by(Company.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
