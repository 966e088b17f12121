"""Tests for the claim lifecycle engine."""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from ivas.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ivas.schemas.enums import ClaimStatus, UserRole
from ivas.schemas.events import EventName
from ivas.services.claim_service import DEFAULT_SETTLEMENT_NOTE, ClaimService
from ivas.services.realtime.hub import EventHub
from tests.factories import as_actor, create_claim, create_company, create_policy, create_user


@pytest.fixture
def hub():
    return Mock(spec=EventHub)


class TestReport:
    @pytest.mark.asyncio
    async def test_insurer_reports_against_own_policy(self, db_session, hub):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        insurer = await create_user(db_session, UserRole.INSURER, company)

        claim = await ClaimService(db_session, hub).report(policy.id, "Windscreen cracked", as_actor(insurer))

        assert claim.status == ClaimStatus.REPORTED.value
        assert claim.insurer_id == company.id
        assert claim.insurance_type == "motor"
        event, payload, scope = hub.publish.call_args.args
        assert event == EventName.CLAIM_UPDATE
        assert payload["status"] == "reported"
        assert scope.company_id == company.id

    @pytest.mark.asyncio
    async def test_unknown_policy(self, db_session):
        regulator = await create_user(db_session, UserRole.CBL)

        with pytest.raises(NotFoundError):
            await ClaimService(db_session).report(999, "Flood damage", as_actor(regulator))

    @pytest.mark.asyncio
    async def test_other_company_cannot_report(self, db_session):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        policy = await create_policy(db_session, acme)
        outsider = await create_user(db_session, UserRole.INSURER, other)

        with pytest.raises(PermissionDeniedError):
            await ClaimService(db_session).report(policy.id, "Flood damage", as_actor(outsider))

    @pytest.mark.asyncio
    async def test_insured_needs_the_policy_on_their_account(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company, policy_number="INS-1")
        stranger = await create_user(db_session, UserRole.INSURED)
        holder = await create_user(db_session, UserRole.INSURED, policy_numbers=["INS-1"])
        service = ClaimService(db_session)

        with pytest.raises(PermissionDeniedError):
            await service.report(policy.id, "Stolen vehicle", as_actor(stranger))
        claim = await service.report(policy.id, "Stolen vehicle", as_actor(holder))

        assert claim.insured_id == holder.id

    @pytest.mark.asyncio
    async def test_blank_description_is_rejected(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        insurer = await create_user(db_session, UserRole.INSURER, company)

        with pytest.raises(ValidationError):
            await ClaimService(db_session).report(policy.id, "   ", as_actor(insurer))

    @pytest.mark.asyncio
    async def test_public_claim_needs_an_approved_company(self, db_session):
        company = await create_company(db_session, registration_status="suspended")
        await create_policy(db_session, company, policy_number="PUB-9")

        with pytest.raises(ConflictError):
            await ClaimService(db_session).report_public("PUB-9", company.id, "Hail damage")

    @pytest.mark.asyncio
    async def test_public_claim_is_filed_against_the_named_company(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company, policy_number="PUB-10")

        claim = await ClaimService(db_session).report_public(" PUB-10 ", company.id, "Hail damage")

        assert claim.policy_id == policy.id
        assert claim.insured_id is None


class TestClose:
    @pytest.mark.asyncio
    async def test_deny_then_settle_is_rejected(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        actor = as_actor(await create_user(db_session, UserRole.INSURER, company))
        service = ClaimService(db_session)
        claim_id = (await service.report(policy.id, "Burst pipe", actor)).id

        denied = await service.deny(claim_id, "insufficient evidence", actor)
        assert (denied.status, denied.reason) == (ClaimStatus.DENIED.value, "insufficient evidence")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.settle(claim_id, Decimal("100"), "", actor)

        assert exc_info.value.details["current"] == ClaimStatus.DENIED.value
        assert (await service.get_claim(claim_id, actor)).status == ClaimStatus.DENIED.value

    @pytest.mark.asyncio
    async def test_settle_records_amount_and_default_note(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        insurer = await create_user(db_session, UserRole.INSURER, company)
        claim = await create_claim(db_session, policy)

        settled = await ClaimService(db_session).settle(claim.id, Decimal("2500.50"), None, as_actor(insurer))

        assert settled.status == ClaimStatus.SETTLED.value
        assert settled.settlement_amount == Decimal("2500.50")
        assert settled.reason == DEFAULT_SETTLEMENT_NOTE
        assert settled.decided_by == insurer.id
        assert settled.decided_at is not None

    @pytest.mark.asyncio
    async def test_negative_settlement_is_rejected(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        insurer = await create_user(db_session, UserRole.INSURER, company)
        claim = await create_claim(db_session, policy)

        with pytest.raises(ValidationError):
            await ClaimService(db_session).settle(claim.id, Decimal("-1"), None, as_actor(insurer))

    @pytest.mark.asyncio
    async def test_deny_requires_a_reason(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        insurer = await create_user(db_session, UserRole.INSURER, company)
        claim = await create_claim(db_session, policy)

        with pytest.raises(ValidationError):
            await ClaimService(db_session).deny(claim.id, "", as_actor(insurer))

    @pytest.mark.asyncio
    async def test_only_the_insurer_can_decide(self, db_session):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        policy = await create_policy(db_session, acme)
        outsider = await create_user(db_session, UserRole.INSURER, other)
        claim = await create_claim(db_session, policy)

        with pytest.raises(PermissionDeniedError):
            await ClaimService(db_session).deny(claim.id, "Not covered", as_actor(outsider))


class TestDispute:
    @pytest.mark.asyncio
    async def test_dispute_points_at_the_closed_claim(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        insurer = await create_user(db_session, UserRole.INSURER, company)
        closed = await create_claim(db_session, policy, status=ClaimStatus.DENIED.value, reason="Late report")

        dispute = await ClaimService(db_session).report(
            policy.id, "Report was on time", as_actor(insurer), previous_claim_id=closed.id
        )

        assert dispute.previous_claim_id == closed.id
        assert dispute.status == ClaimStatus.REPORTED.value

    @pytest.mark.asyncio
    async def test_open_claims_cannot_be_disputed(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        insurer = await create_user(db_session, UserRole.INSURER, company)
        open_claim = await create_claim(db_session, policy)

        with pytest.raises(ValidationError):
            await ClaimService(db_session).report(
                policy.id, "Second opinion", as_actor(insurer), previous_claim_id=open_claim.id
            )

    @pytest.mark.asyncio
    async def test_dispute_must_reference_the_same_policy(self, db_session):
        company = await create_company(db_session)
        first = await create_policy(db_session, company)
        second = await create_policy(db_session, company)
        insurer = await create_user(db_session, UserRole.INSURER, company)
        closed = await create_claim(db_session, first, status=ClaimStatus.SETTLED.value)

        with pytest.raises(ValidationError):
            await ClaimService(db_session).report(
                second.id, "Wrong policy", as_actor(insurer), previous_claim_id=closed.id
            )


class TestVisibility:
    @pytest.mark.asyncio
    async def test_companies_only_list_their_own_claims(self, db_session):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        await create_claim(db_session, await create_policy(db_session, acme))
        await create_claim(db_session, await create_policy(db_session, other))
        insurer = await create_user(db_session, UserRole.INSURER, acme)
        regulator = await create_user(db_session, UserRole.ADMIN)
        service = ClaimService(db_session)

        own, own_total = await service.list_claims(as_actor(insurer))
        _, all_total = await service.list_claims(as_actor(regulator))

        assert own_total == 1
        assert own[0].insurer_id == acme.id
        assert all_total == 2

    @pytest.mark.asyncio
    async def test_hidden_claims_look_missing(self, db_session):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        claim = await create_claim(db_session, await create_policy(db_session, acme))
        outsider = await create_user(db_session, UserRole.INSURER, other)

        with pytest.raises(NotFoundError):
            await ClaimService(db_session).get_claim(claim.id, as_actor(outsider))
