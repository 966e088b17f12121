"""Tests for policy submission."""

from datetime import date

import pytest

from ivas.core.exceptions import (
    ConflictError,
    PermissionDeniedError,
    PolicyNumberConflictError,
    ValidationError,
)
from ivas.schemas.enums import ApprovalStatus, CoverageType, UserRole, VerificationStatus
from ivas.schemas.policy import PolicyCreateRequest
from ivas.services.approval_service import ApprovalService
from ivas.services.policy_service import POLICY_APPROVAL_NOTE, PolicyService, validate_policy_terms
from ivas.services.verification_service import VerificationService
from ivas.utils.clock import utc_now
from tests.factories import as_actor, create_company, create_policy, create_user


def _request(**overrides) -> PolicyCreateRequest:
    fields = {
        "holder_name": "Jane Doe",
        "holder_id_number": "A1234567",
        "policy_type": "motor",
        "start_date": date(2025, 1, 1),
        "expiry_date": date(2026, 1, 1),
    }
    fields.update(overrides)
    return PolicyCreateRequest(**fields)


class TestPolicyTerms:
    def test_expiry_must_follow_start(self):
        with pytest.raises(ValidationError):
            validate_policy_terms(_request(expiry_date=date(2025, 1, 1)))

    def test_coverage_type_needs_a_reinsurance_number(self):
        with pytest.raises(ValidationError):
            validate_policy_terms(_request(coverage_type=CoverageType.TREATY))

    def test_reinsurance_number_needs_a_coverage_type(self):
        with pytest.raises(ValidationError):
            validate_policy_terms(_request(reinsurance_number="RE-77"))

    def test_paired_coverage_is_accepted(self):
        validate_policy_terms(_request(coverage_type=CoverageType.FACULTATIVE, reinsurance_number="RE-77"))


class TestSubmitPolicy:
    @pytest.mark.asyncio
    async def test_number_is_allocated_and_approval_opened(self, db_session):
        company = await create_company(db_session, license_number="LIC-0042")
        insurer = await create_user(db_session, UserRole.INSURER, company)

        policy, approval = await PolicyService(db_session).submit_policy(_request(), as_actor(insurer))

        year = utc_now().year
        assert policy.policy_number == f"LIC-0042-{year}-00001"
        assert (policy.policy_year, policy.policy_counter) == (year, 1)
        assert policy.approval_status == ApprovalStatus.PENDING.value
        assert policy.is_active is True
        assert len(policy.hash) == 64
        assert approval.entity_id == policy.id
        assert approval.notes == POLICY_APPROVAL_NOTE

    @pytest.mark.asyncio
    async def test_consecutive_submissions_get_consecutive_numbers(self, db_session):
        company = await create_company(db_session, license_number="LIC-0042")
        actor = as_actor(await create_user(db_session, UserRole.INSURER, company))
        service = PolicyService(db_session)

        first, _ = await service.submit_policy(_request(), actor)
        second, _ = await service.submit_policy(_request(holder_name="John Roe"), actor)

        assert first.policy_counter + 1 == second.policy_counter

    @pytest.mark.asyncio
    async def test_companies_in_the_same_license_series_both_auto_number(self, db_session):
        first = await create_company(db_session, license_number="LIC-0101")
        second = await create_company(db_session, license_number="LIC-0102")
        first_actor = as_actor(await create_user(db_session, UserRole.INSURER, first))
        second_actor = as_actor(await create_user(db_session, UserRole.INSURER, second))
        service = PolicyService(db_session)

        a, _ = await service.submit_policy(_request(), first_actor)
        a_number = a.policy_number
        b, _ = await service.submit_policy(_request(), second_actor)

        year = utc_now().year
        assert a_number == f"LIC-0101-{year}-00001"
        assert b.policy_number == f"LIC-0102-{year}-00001"

    @pytest.mark.asyncio
    async def test_explicit_number_must_be_unused(self, db_session):
        company = await create_company(db_session)
        await create_policy(db_session, company, policy_number="LIC-2025-00001")
        actor = as_actor(await create_user(db_session, UserRole.INSURER, company))

        with pytest.raises(PolicyNumberConflictError) as exc_info:
            await PolicyService(db_session).submit_policy(_request(policy_number="LIC-2025-00001"), actor)

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_company_must_be_approved(self, db_session):
        company = await create_company(db_session, registration_status="pending")
        actor = as_actor(await create_user(db_session, UserRole.INSURER, company))

        with pytest.raises(ConflictError):
            await PolicyService(db_session).submit_policy(_request(), actor)

    @pytest.mark.asyncio
    async def test_insurers_submit_only_for_their_company(self, db_session):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        actor = as_actor(await create_user(db_session, UserRole.INSURER, acme))

        with pytest.raises(PermissionDeniedError):
            await PolicyService(db_session).submit_policy(_request(company_id=other.id), actor)

    @pytest.mark.asyncio
    async def test_regulators_must_name_the_company(self, db_session):
        actor = as_actor(await create_user(db_session, UserRole.ADMIN))

        with pytest.raises(ValidationError):
            await PolicyService(db_session).submit_policy(_request(), actor)

    @pytest.mark.asyncio
    async def test_submitted_policy_verifies_only_after_approval(self, db_session):
        company = await create_company(db_session, license_number="LIC-1")
        actor = as_actor(await create_user(db_session, UserRole.INSURER, company))
        verifications = VerificationService(db_session, today=lambda: date(2025, 6, 1))

        policy, approval = await PolicyService(db_session).submit_policy(
            _request(policy_number="LIC-2025-00001"), actor
        )
        before = await verifications.verify(policy.policy_number)
        await ApprovalService(db_session).decide(approval.id, "approved", approver_id=1)
        after = await verifications.verify(policy.policy_number)

        assert before.status == VerificationStatus.FAKE
        assert "not approved" in before.reason
        assert after.status == VerificationStatus.VALID


class TestQueriesAndDeactivation:
    @pytest.mark.asyncio
    async def test_deactivated_policy_verifies_as_fake(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company, policy_number="DEACT-1")
        actor = as_actor(await create_user(db_session, UserRole.INSURER, company))

        await PolicyService(db_session).deactivate_policy(policy.id, actor, reason="Premium unpaid")
        result = await VerificationService(db_session).verify("DEACT-1")

        assert result.status == VerificationStatus.FAKE

    @pytest.mark.asyncio
    async def test_company_members_list_only_their_policies(self, db_session):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        await create_policy(db_session, acme)
        await create_policy(db_session, other)
        actor = as_actor(await create_user(db_session, UserRole.COMPANY, acme))

        items, total = await PolicyService(db_session).list_policies(actor, company_id=other.id)

        assert total == 1
        assert items[0].company_id == acme.id

    @pytest.mark.asyncio
    async def test_insured_users_cannot_list_policies(self, db_session):
        actor = as_actor(await create_user(db_session, UserRole.INSURED))

        with pytest.raises(PermissionDeniedError):
            await PolicyService(db_session).list_policies(actor)
