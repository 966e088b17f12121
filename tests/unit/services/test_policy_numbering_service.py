"""Tests for the policy number allocator."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from ivas.core.config import settings
from ivas.core.exceptions import NotFoundError, RetryableAllocationError, ValidationError
from ivas.database.models import PolicyCounter
from ivas.services.policy_numbering_service import (
    PolicyNumberingService,
    format_policy_number,
    license_code,
)
from tests.factories import create_company

FAST_RETRIES = settings.numbering.model_copy(update={"retry_attempts": 3, "retry_wait_min": 0, "retry_wait_max": 0})


def _locked() -> OperationalError:
    return OperationalError("INSERT INTO policy_counters ...", {}, Exception("database is locked"))


class TestNumberFormat:
    @pytest.mark.parametrize(
        "license_number,expected",
        [
            ("LIC-0042", "LIC-0042"),
            ("lic-0042", "LIC-0042"),
            ("  AB/12--77 ", "AB-12-77"),
            ("NOHYPHEN", "NOHYPHEN"),
            ("-/-", ""),
        ],
    )
    def test_license_code(self, license_number, expected):
        assert license_code(license_number) == expected

    def test_counter_is_zero_padded(self):
        assert format_policy_number("LIC-1", 2025, 42) == "LIC-1-2025-00042"
        assert format_policy_number("LIC-1", 2025, 123456) == "LIC-1-2025-123456"


class TestAllocate:
    @pytest.mark.asyncio
    async def test_sequential_allocations_increase_by_one(self, db_session):
        company = await create_company(db_session, license_number="LIC-0001")
        numbering = PolicyNumberingService(db_session)

        first = await numbering.allocate(company.id, 2025)
        second = await numbering.allocate(company.id, 2025)
        await db_session.commit()

        assert first.policy_number == "LIC-0001-2025-00001"
        assert second.policy_number == "LIC-0001-2025-00002"
        assert (first.counter, second.counter) == (1, 2)

    @pytest.mark.asyncio
    async def test_counters_are_independent_per_year_and_company(self, db_session):
        acme = await create_company(db_session, license_number="ACME-1")
        other = await create_company(db_session, license_number="OTH-1")
        numbering = PolicyNumberingService(db_session)

        assert (await numbering.allocate(acme.id, 2025)).policy_number == "ACME-1-2025-00001"
        assert (await numbering.allocate(acme.id, 2026)).policy_number == "ACME-1-2026-00001"
        assert (await numbering.allocate(other.id, 2025)).policy_number == "OTH-1-2025-00001"

    @pytest.mark.asyncio
    async def test_companies_sharing_a_license_series_get_distinct_numbers(self, db_session):
        first = await create_company(db_session, license_number="LIC-0001")
        second = await create_company(db_session, license_number="LIC-0002")
        numbering = PolicyNumberingService(db_session)

        a = await numbering.allocate(first.id, 2025)
        b = await numbering.allocate(second.id, 2025)

        assert (a.counter, b.counter) == (1, 1)
        assert a.policy_number == "LIC-0001-2025-00001"
        assert b.policy_number == "LIC-0002-2025-00001"

    @pytest.mark.asyncio
    async def test_license_without_letters_or_digits_cannot_number(self, db_session):
        company = await create_company(db_session, license_number="--")

        with pytest.raises(ValidationError):
            await PolicyNumberingService(db_session).allocate(company.id, 2025)

    @pytest.mark.asyncio
    async def test_unknown_company(self, db_session):
        with pytest.raises(NotFoundError):
            await PolicyNumberingService(db_session).allocate(999, 2025)

    @pytest.mark.asyncio
    async def test_rollback_returns_nothing_to_the_pool(self, db_session):
        company_id = (await create_company(db_session, license_number="LIC-7")).id
        numbering = PolicyNumberingService(db_session)

        await numbering.allocate(company_id, 2025)
        await db_session.rollback()
        allocated = await numbering.allocate(company_id, 2025)

        assert allocated.counter == 1

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_unique(self, db_session, session_factory):
        company = await create_company(db_session, license_number="LIC-5")
        db_session.add(PolicyCounter(company_id=company.id, year=2025, counter=9))
        await db_session.commit()

        async def allocate_in_own_session():
            async with session_factory() as session:
                allocated = await PolicyNumberingService(session).allocate(company.id, 2025)
                await session.commit()
                return allocated.policy_number

        numbers = await asyncio.gather(allocate_in_own_session(), allocate_in_own_session())

        assert set(numbers) == {"LIC-5-2025-00010", "LIC-5-2025-00011"}

    @pytest.mark.asyncio
    async def test_many_concurrent_allocations_have_no_gaps(self, db_session, session_factory):
        company = await create_company(db_session, license_number="LIC-9")

        async def allocate_in_own_session():
            async with session_factory() as session:
                allocated = await PolicyNumberingService(session).allocate(company.id, 2025)
                await session.commit()
                return allocated.counter

        counters = await asyncio.gather(*(allocate_in_own_session() for _ in range(10)))

        assert sorted(counters) == list(range(1, 11))


class TestAllocateWithRetry:
    @pytest.mark.asyncio
    async def test_store_failure_is_retryable(self, db_session):
        company = await create_company(db_session)
        numbering = PolicyNumberingService(db_session, config=FAST_RETRIES)
        numbering.counters.increment = AsyncMock(side_effect=_locked())

        with pytest.raises(RetryableAllocationError) as exc_info:
            await numbering.allocate(company.id, 2025)

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_retries_until_the_increment_succeeds(self, db_session):
        company = await create_company(db_session, license_number="LIC-3")
        numbering = PolicyNumberingService(db_session, config=FAST_RETRIES)
        numbering.counters.increment = AsyncMock(side_effect=[_locked(), _locked(), 4])

        allocated = await numbering.allocate_with_retry(company.id, 2025)

        assert allocated.policy_number == "LIC-3-2025-00004"
        assert numbering.counters.increment.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_configured_attempts(self, db_session):
        company = await create_company(db_session)
        numbering = PolicyNumberingService(db_session, config=FAST_RETRIES)
        numbering.counters.increment = AsyncMock(side_effect=_locked())

        with pytest.raises(RetryableAllocationError):
            await numbering.allocate_with_retry(company.id, 2025)

        assert numbering.counters.increment.await_count == 3


class TestPreviewAndStats:
    @pytest.mark.asyncio
    async def test_peek_does_not_consume_a_number(self, db_session):
        company = await create_company(db_session, license_number="LIC-0001")
        numbering = PolicyNumberingService(db_session)

        first = await numbering.peek_next(company.id, 2025)
        second = await numbering.peek_next(company.id, 2025)
        allocated = await numbering.allocate(company.id, 2025)

        assert first.next_policy_number == second.next_policy_number == "LIC-0001-2025-00001"
        assert first.current_counter == 0
        assert allocated.policy_number == first.next_policy_number

    @pytest.mark.asyncio
    async def test_stats_list_every_year(self, db_session):
        company = await create_company(db_session, license_number="LIC-0001")
        numbering = PolicyNumberingService(db_session)
        for _ in range(3):
            await numbering.allocate(company.id, 2025)
        await numbering.allocate(company.id, 2026)
        await db_session.commit()

        stats = await numbering.stats(company.id)

        assert stats.license_code == "LIC-0001"
        assert [(y.year, y.allocated) for y in stats.years] == [(2026, 1), (2025, 3)]
        assert stats.years[1].last_policy_number == "LIC-0001-2025-00003"
