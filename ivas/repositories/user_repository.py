from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import User
from ivas.repositories.base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for platform users."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_username_or_email(self, username: str, email: str) -> Optional[User]:
        query = select(User).where(or_(User.username == username, User.email == email))
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_company_users(self, company_id: int) -> List[User]:
        query = select(User).where(User.company_id == company_id).order_by(User.id)
        result = await self.session.execute(query)
        return list(result.scalars().all())
