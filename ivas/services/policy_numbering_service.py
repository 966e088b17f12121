"""Policy number allocator.

Numbers look like ``LIC-0042-2025-00007``: the company's license code, the
allocation year and a zero padded counter that is unique per company and
year. License numbers are unique, so the license code keeps numbers of
different companies apart. The counter lives in ``policy_counters`` and is
only ever advanced by one atomic upsert, never by a read followed by a
write.
"""

import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ivas.core.config import NumberingSettings, settings
from ivas.core.exceptions import NotFoundError, RetryableAllocationError, ValidationError
from ivas.database.models import Company
from ivas.repositories.company_repository import CompanyRepository
from ivas.repositories.counter_repository import PolicyCounterRepository
from ivas.schemas.policy import NumberingStats, NumberingYearStats, PolicyNumberPreview
from ivas.utils.clock import utc_now
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)

_LICENSE_SEPARATORS = re.compile(r"[^A-Z0-9]+")


@dataclass(frozen=True)
class AllocatedNumber:
    policy_number: str
    year: int
    counter: int


def license_code(license_number: str) -> str:
    """Canonical form of a license number, e.g. ``LIC-0042`` for `` lic 0042``.

    Upper-cases and collapses every run of other characters into one ``-``.
    Registration stores license numbers in this form.
    """
    return _LICENSE_SEPARATORS.sub("-", license_number.upper()).strip("-")


def format_policy_number(code: str, year: int, counter: int, width: int = 5) -> str:
    return f"{code}-{year}-{counter:0{width}d}"


class PolicyNumberingService:
    """Allocates and previews policy numbers.

    ``allocate`` runs inside the caller's transaction: the counter row stays
    locked until the caller commits, and a rollback returns nothing to the
    pool because the increment itself is rolled back with it.
    """

    def __init__(self, session: AsyncSession, config: Optional[NumberingSettings] = None):
        self.session = session
        self.config = config or settings.numbering
        self.companies = CompanyRepository(session)
        self.counters = PolicyCounterRepository(session)

    async def _company(self, company_id: int) -> Company:
        company = await self.companies.get_by_id(company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        return company

    def _code(self, company: Company) -> str:
        code = license_code(company.license_number)
        if not code:
            raise ValidationError(f"Company {company.id} has no usable license number for policy numbering")
        return code

    async def allocate(self, company_id: int, year: Optional[int] = None) -> AllocatedNumber:
        """Draw the next number for ``(company_id, year)``.

        Raises:
            NotFoundError: Unknown company
            ValidationError: The company license yields no code
            RetryableAllocationError: The store could not complete the increment
        """
        year = year or utc_now().year
        company = await self._company(company_id)
        code = self._code(company)

        try:
            counter = await self.counters.increment(company_id, year)
        except IntegrityError:
            raise
        except DBAPIError as e:
            await self.session.rollback()
            LOGGER.warning(
                f"Policy counter increment failed: {e}",
                extra={"company_id": company_id, "year": year},
            )
            raise RetryableAllocationError(
                f"Could not allocate a policy number for company {company_id}; retry shortly",
                original_error=e,
            ) from e

        number = format_policy_number(code, year, counter, self.config.counter_width)
        LOGGER.info("Allocated policy number", extra={"company_id": company_id, "policy_number": number})
        return AllocatedNumber(policy_number=number, year=year, counter=counter)

    async def allocate_with_retry(self, company_id: int, year: Optional[int] = None) -> AllocatedNumber:
        """``allocate`` with exponential backoff on retryable store failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(multiplier=self.config.retry_wait_min, max=self.config.retry_wait_max),
            retry=retry_if_exception_type(RetryableAllocationError),
            reraise=True,
        )
        return await retrying(self.allocate, company_id, year)

    async def peek_next(self, company_id: int, year: Optional[int] = None) -> PolicyNumberPreview:
        """Show the number the next allocation would produce, without taking it."""
        year = year or utc_now().year
        company = await self._company(company_id)
        current = await self.counters.current(company_id, year)
        return PolicyNumberPreview(
            company_id=company_id,
            year=year,
            current_counter=current,
            next_policy_number=format_policy_number(self._code(company), year, current + 1, self.config.counter_width),
        )

    async def stats(self, company_id: int) -> NumberingStats:
        company = await self._company(company_id)
        code = self._code(company)
        years = [
            NumberingYearStats(
                year=row.year,
                allocated=row.counter,
                last_policy_number=(
                    format_policy_number(code, row.year, row.counter, self.config.counter_width)
                    if row.counter
                    else None
                ),
            )
            for row in await self.counters.list_for_company(company_id)
        ]
        return NumberingStats(company_id=company_id, license_code=code, years=years)
