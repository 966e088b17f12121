from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import PolicyCounter
from ivas.repositories.base_repository import BaseRepository

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class PolicyCounterRepository(BaseRepository[PolicyCounter]):
    """Repository for the per (company, year) policy number counters."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, PolicyCounter)

    async def increment(self, company_id: int, year: int) -> int:
        """Atomically bump the counter and return the new value.

        A single INSERT ... ON CONFLICT DO UPDATE ... RETURNING statement, so
        concurrent callers are serialized by the store's row lock instead of
        racing on a value read into memory.
        """
        dialect_name = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect_name)
        if insert is None:
            raise NotImplementedError(f"Atomic counter upsert is not available for dialect '{dialect_name}'")

        stmt = (
            insert(PolicyCounter)
            .values(company_id=company_id, year=year, counter=1)
            .on_conflict_do_update(
                index_elements=[PolicyCounter.company_id, PolicyCounter.year],
                set_={"counter": PolicyCounter.counter + 1},
            )
            .returning(PolicyCounter.counter)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def current(self, company_id: int, year: int) -> int:
        """Last value handed out for the pair, 0 when nothing was allocated yet."""
        query = select(PolicyCounter.counter).where(
            PolicyCounter.company_id == company_id,
            PolicyCounter.year == year,
        )
        result = await self.session.execute(query)
        value: Optional[int] = result.scalar_one_or_none()
        return value or 0

    async def list_for_company(self, company_id: int) -> List[PolicyCounter]:
        query = (
            select(PolicyCounter)
            .where(PolicyCounter.company_id == company_id)
            .order_by(PolicyCounter.year.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
