"""Tests for the company registration lifecycle."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from ivas.core.exceptions import (
    ConflictError,
    DuplicatePendingError,
    InvalidTransitionError,
    ValidationError,
)
from ivas.schemas.company import CompanyRegisterRequest
from ivas.schemas.enums import ApprovalEntityType, ApprovalStatus, RegistrationStatus
from ivas.schemas.events import EventName
from ivas.services.approval_service import ApprovalService
from ivas.services.company_service import CompanyService, suspension_ends_at
from ivas.services.realtime.hub import EventHub
from ivas.utils.clock import utc_now
from tests.factories import create_company


def _registration(license_number: str = "NEW-0001") -> CompanyRegisterRequest:
    return CompanyRegisterRequest(
        name="Harbour Mutual",
        license_number=license_number,
        contact_email="ops@harbour.example.com",
    )


class TestRegister:
    @pytest.mark.asyncio
    async def test_registration_starts_pending(self, db_session):
        company, approval = await CompanyService(db_session).register(_registration(), requested_by=None)

        assert company.registration_status == RegistrationStatus.PENDING.value
        assert approval.entity_type == ApprovalEntityType.INSURER.value
        assert approval.entity_id == company.id
        assert approval.status == ApprovalStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_license_numbers_are_unique(self, db_session):
        service = CompanyService(db_session)
        await service.register(_registration("DUP-1"))

        with pytest.raises(ConflictError):
            await service.register(_registration("DUP-1"))

    @pytest.mark.asyncio
    async def test_license_number_is_stored_in_canonical_form(self, db_session):
        service = CompanyService(db_session)
        company, _ = await service.register(_registration(" lic 0042 "))
        stored = company.license_number

        with pytest.raises(ConflictError):
            await service.register(_registration("LIC/0042"))

        assert stored == "LIC-0042"

    @pytest.mark.asyncio
    async def test_license_number_needs_letters_or_digits(self, db_session):
        with pytest.raises(ValidationError):
            await CompanyService(db_session).register(_registration("--"))


class TestSuspend:
    @pytest.mark.asyncio
    async def test_suspend_is_immediate_and_logged_as_a_decision(self, db_session):
        company = await create_company(db_session)
        hub = Mock(spec=EventHub)

        suspended = await CompanyService(db_session, hub).suspend(company.id, "Solvency breach", 30, actor_id=1)

        assert suspended.registration_status == RegistrationStatus.SUSPENDED.value
        assert suspended.suspension_duration == 30
        history = await ApprovalService(db_session).history(ApprovalEntityType.INSURER, company.id)
        assert [(a.status, a.reason) for a in history] == [(ApprovalStatus.DECLINED.value, "Solvency breach")]
        event, payload, _ = hub.publish.call_args.args
        assert event == EventName.COMPANY_STATUS_UPDATE
        assert payload["registration_status"] == RegistrationStatus.SUSPENDED.value
        assert payload["suspension_ends_at"] is not None

    @pytest.mark.asyncio
    async def test_suspend_closes_an_open_registration_request(self, db_session):
        company, approval = await CompanyService(db_session).register(_registration())
        company_id, approval_id = company.id, approval.id

        await CompanyService(db_session).suspend(company_id, "Fraud investigation", 90, actor_id=1)

        closed = await ApprovalService(db_session).get_approval(approval_id)
        assert closed.status == ApprovalStatus.DECLINED.value

    @pytest.mark.parametrize("reason,duration", [("", 10), ("Late filing", 0), ("Late filing", None)])
    @pytest.mark.asyncio
    async def test_suspend_validates_input(self, db_session, reason, duration):
        company = await create_company(db_session)

        with pytest.raises(ValidationError):
            await CompanyService(db_session).suspend(company.id, reason, duration, actor_id=1)

    @pytest.mark.asyncio
    async def test_cannot_suspend_twice(self, db_session):
        company_id = (await create_company(db_session)).id
        service = CompanyService(db_session)
        await service.suspend(company_id, "Late filing", 10, actor_id=1)

        with pytest.raises(InvalidTransitionError):
            await service.suspend(company_id, "Late filing again", 10, actor_id=1)

    def test_suspension_end_is_derived_from_duration(self):
        company = Mock(suspended_at=utc_now(), suspension_duration=7)

        ends_at = suspension_ends_at(company)

        assert ends_at == (company.suspended_at + timedelta(days=7)).isoformat()


class TestReinstate:
    @pytest.mark.asyncio
    async def test_reinstate_lifts_the_suspension(self, db_session):
        company_id = (await create_company(db_session)).id
        service = CompanyService(db_session)
        await service.suspend(company_id, "Late filing", 10, actor_id=1)

        reinstated = await service.reinstate(company_id, actor_id=2, notes="Filing received")

        assert reinstated.registration_status == RegistrationStatus.APPROVED.value
        assert reinstated.suspension_reason is None
        assert reinstated.registration_expiry is not None
        history = await ApprovalService(db_session).history(ApprovalEntityType.INSURER, company_id)
        assert sorted(a.status for a in history) == [ApprovalStatus.APPROVED.value, ApprovalStatus.DECLINED.value]

    @pytest.mark.asyncio
    async def test_only_suspended_companies_can_be_reinstated(self, db_session):
        company = await create_company(db_session)

        with pytest.raises(InvalidTransitionError):
            await CompanyService(db_session).reinstate(company.id, actor_id=2)


class TestRenewAndExpire:
    @pytest.mark.asyncio
    async def test_renewal_goes_back_to_pending(self, db_session):
        company = await create_company(db_session)
        service = CompanyService(db_session)

        approval = await service.renew_registration(company.id, requested_by=5, notes="Annual renewal")

        assert approval.status == ApprovalStatus.PENDING.value
        assert (await service.get_company(company.id)).registration_status == RegistrationStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_renewal_cannot_be_requested_twice(self, db_session):
        company_id = (await create_company(db_session)).id
        service = CompanyService(db_session)
        await service.renew_registration(company_id)

        with pytest.raises(DuplicatePendingError):
            await service.renew_registration(company_id)

    @pytest.mark.asyncio
    async def test_suspended_companies_cannot_renew(self, db_session):
        company_id = (await create_company(db_session)).id
        service = CompanyService(db_session)
        await service.suspend(company_id, "Late filing", 10, actor_id=1)

        with pytest.raises(InvalidTransitionError):
            await service.renew_registration(company_id)

    @pytest.mark.asyncio
    async def test_lapsed_registrations_expire(self, db_session):
        lapsed = await create_company(db_session, registration_expiry=utc_now() - timedelta(days=1))
        current = await create_company(db_session, registration_expiry=utc_now() + timedelta(days=100))
        lapsed_id, current_id = lapsed.id, current.id

        expired = await CompanyService(db_session).expire_lapsed_registrations(actor_id=1)

        assert [c.id for c in expired] == [lapsed_id]
        assert (await CompanyService(db_session).get_company(current_id)).registration_status == "approved"

    @pytest.mark.asyncio
    async def test_only_approved_companies_with_a_past_expiry_lapse(self, db_session):
        lapsed = [
            (await create_company(db_session, registration_expiry=utc_now() - timedelta(days=n))).id
            for n in (1, 30, 400)
        ]
        await create_company(db_session, registration_expiry=None)
        await create_company(
            db_session, registration_status="suspended", registration_expiry=utc_now() - timedelta(days=5)
        )

        expired = await CompanyService(db_session).expire_lapsed_registrations(actor_id=1)
        again = await CompanyService(db_session).expire_lapsed_registrations(actor_id=1)

        assert [c.id for c in expired] == sorted(lapsed)
        assert again == []
