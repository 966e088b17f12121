"""Tests for bonds, insurance types and the regulator dashboard."""

from decimal import Decimal

import pytest

from ivas.core.exceptions import ConflictError, PermissionDeniedError
from ivas.database.models import Bond
from ivas.schemas.catalog import BondCreateRequest, InsuranceTypeCreateRequest
from ivas.schemas.enums import ApprovalEntityType, ApprovalStatus, UserRole
from ivas.services.approval_service import ApprovalService
from ivas.services.catalog_service import CatalogService
from ivas.services.dashboard_service import DashboardService
from ivas.services.verification_service import VerificationService
from tests.factories import as_actor, create_claim, create_company, create_policy, create_user


class TestBonds:
    @pytest.mark.asyncio
    async def test_bond_is_created_pending_with_an_approval(self, db_session):
        company = await create_company(db_session)
        policy = await create_policy(db_session, company)
        actor = as_actor(await create_user(db_session, UserRole.INSURER, company))

        bond, approval = await CatalogService(db_session).create_bond(
            BondCreateRequest(policy_id=policy.id, bond_type="performance", value=Decimal("50000")), actor
        )

        assert bond.approval_status == ApprovalStatus.PENDING.value
        assert bond.company_id == company.id
        assert (approval.entity_type, approval.entity_id) == (ApprovalEntityType.BOND.value, bond.id)

    @pytest.mark.asyncio
    async def test_approving_a_bond(self, db_session):
        company = await create_company(db_session)
        actor = as_actor(await create_user(db_session, UserRole.INSURER, company))
        bond, approval = await CatalogService(db_session).create_bond(
            BondCreateRequest(bond_type="bid", value=Decimal("1000")), actor
        )

        await ApprovalService(db_session).decide(approval.id, "approved", approver_id=1)

        refreshed = await db_session.get(Bond, bond.id, populate_existing=True)
        assert refreshed.approval_status == ApprovalStatus.APPROVED.value

    @pytest.mark.asyncio
    async def test_bond_cannot_reference_another_companys_policy(self, db_session):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        policy = await create_policy(db_session, other)
        actor = as_actor(await create_user(db_session, UserRole.INSURER, acme))

        with pytest.raises(PermissionDeniedError):
            await CatalogService(db_session).create_bond(
                BondCreateRequest(policy_id=policy.id, bond_type="bid", value=Decimal("1")), actor
            )

    @pytest.mark.asyncio
    async def test_companies_only_list_their_own_bonds(self, db_session):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        acme_actor = as_actor(await create_user(db_session, UserRole.INSURER, acme))
        other_actor = as_actor(await create_user(db_session, UserRole.INSURER, other))
        service = CatalogService(db_session)
        await service.create_bond(BondCreateRequest(bond_type="bid", value=Decimal("1")), acme_actor)
        await service.create_bond(BondCreateRequest(bond_type="bid", value=Decimal("2")), other_actor)

        bonds = await service.list_bonds(acme_actor)

        assert [b.company_id for b in bonds] == [acme.id]


class TestInsuranceTypes:
    @pytest.mark.asyncio
    async def test_codes_are_normalised_and_unique(self, db_session):
        actor = as_actor(await create_user(db_session, UserRole.ADMIN))
        service = CatalogService(db_session)

        created, approval = await service.create_insurance_type(
            InsuranceTypeCreateRequest(code=" marine ", name="Marine cargo"), actor
        )
        assert created.code == "MARINE"
        assert approval.entity_type == ApprovalEntityType.TYPE.value
        with pytest.raises(ConflictError):
            await service.create_insurance_type(InsuranceTypeCreateRequest(code="MARINE", name="Duplicate"), actor)

    @pytest.mark.asyncio
    async def test_listing_filters_by_approval_status(self, db_session):
        actor = as_actor(await create_user(db_session, UserRole.ADMIN))
        service = CatalogService(db_session)
        _, approval = await service.create_insurance_type(InsuranceTypeCreateRequest(code="LIFE", name="Life"), actor)
        await service.create_insurance_type(InsuranceTypeCreateRequest(code="FIRE", name="Fire"), actor)
        await ApprovalService(db_session).decide(approval.id, "approved", approver_id=actor.id)

        approved = await service.list_insurance_types(approval_status="approved")

        assert [t.code for t in approved] == ["LIFE"]


class TestDashboard:
    @pytest.mark.asyncio
    async def test_counts_per_status(self, db_session):
        approved = await create_company(db_session)
        await create_company(db_session, registration_status="suspended")
        policy = await create_policy(db_session, approved)
        await create_policy(db_session, approved, approval_status="pending")
        await create_claim(db_session, policy)
        await VerificationService(db_session).verify(policy.policy_number)
        await VerificationService(db_session).verify("MISSING-1")
        actor = as_actor(await create_user(db_session, UserRole.INSURER, approved))
        await CatalogService(db_session).create_bond(BondCreateRequest(bond_type="bid", value=Decimal("1")), actor)

        stats = await DashboardService(db_session).stats()

        assert stats.companies == {"approved": 1, "suspended": 1}
        assert stats.policies == {"approved": 1, "pending": 1}
        assert stats.claims == {"reported": 1}
        assert stats.verifications == {"valid": 1, "not_found": 1}
        assert stats.pending_approvals == {"bond": 1}
