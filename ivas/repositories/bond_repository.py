from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import Bond, InsuranceType
from ivas.repositories.base_repository import BaseRepository


class BondRepository(BaseRepository[Bond]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Bond)


class InsuranceTypeRepository(BaseRepository[InsuranceType]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, InsuranceType)
