"""Bonds and insurance types.

Both are small catalogue entities that only matter once the regulator has
approved them, so creating one always opens an approval request alongside.
"""

from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError
from ivas.database.models import Approval, Bond, InsuranceType
from ivas.repositories.bond_repository import BondRepository, InsuranceTypeRepository
from ivas.repositories.policy_repository import PolicyRepository
from ivas.schemas.auth import CurrentUser
from ivas.schemas.catalog import BondCreateRequest, InsuranceTypeCreateRequest
from ivas.schemas.enums import ApprovalEntityType, ApprovalStatus
from ivas.services.approval_service import ApprovalService
from ivas.services.audit_service import AuditAction, AuditContext, AuditService
from ivas.services.base_service import BaseService
from ivas.services.realtime.hub import EventHub
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CatalogService(BaseService):
    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None):
        super().__init__(session, hub)
        self.bonds = BondRepository(session)
        self.types = InsuranceTypeRepository(session)
        self.policies = PolicyRepository(session)
        self.approval_service = ApprovalService(session, hub)
        self.audit = AuditService(session)

    async def create_bond(
        self,
        data: BondCreateRequest,
        actor: CurrentUser,
        context: Optional[AuditContext] = None,
    ) -> Tuple[Bond, Approval]:
        """Register a bond and request its approval.

        Raises:
            NotFoundError: The referenced policy does not exist
            PermissionDeniedError: The policy belongs to another company
        """
        company_id = actor.company_id
        async with self.unit_of_work():
            if data.policy_id is not None:
                policy = await self.policies.get_by_id(data.policy_id)
                if policy is None:
                    raise NotFoundError("Policy", data.policy_id)
                if not actor.is_regulator and policy.company_id != actor.company_id:
                    raise PermissionDeniedError("Bonds can only reference your own company's policies")
                company_id = policy.company_id

            bond = await self.bonds.create(
                policy_id=data.policy_id,
                company_id=company_id,
                bond_type=data.bond_type.strip(),
                value=data.value,
                approval_status=ApprovalStatus.PENDING.value,
            )
            approval = await self.approval_service.open_request(
                ApprovalEntityType.BOND, bond, requested_by=actor.id, notes="New bond", context=context
            )
            await self.audit.record(
                AuditAction.BOND_CREATE,
                entity_type="bond",
                entity_id=bond.id,
                user_id=actor.id,
                details={"bond_type": bond.bond_type, "value": str(bond.value), "approval_id": approval.id},
                context=context,
            )

        LOGGER.info("Bond created", extra={"bond_id": bond.id, "approval_id": approval.id})
        return bond, approval

    async def create_insurance_type(
        self,
        data: InsuranceTypeCreateRequest,
        actor: CurrentUser,
        context: Optional[AuditContext] = None,
    ) -> Tuple[InsuranceType, Approval]:
        """Register an insurance type and request its approval.

        Raises:
            ConflictError: The code is already taken
        """
        code = data.code.strip().upper()
        async with self.unit_of_work():
            existing = await self.types.get_all(limit=1, filters={"code": code})
            if existing:
                raise ConflictError(f"Insurance type {code} already exists")
            try:
                insurance_type = await self.types.create(
                    code=code,
                    name=data.name.strip(),
                    description=data.description,
                    company_id=actor.company_id,
                    approval_status=ApprovalStatus.PENDING.value,
                )
            except IntegrityError as e:
                raise ConflictError(f"Insurance type {code} already exists", original_error=e) from e

            approval = await self.approval_service.open_request(
                ApprovalEntityType.TYPE,
                insurance_type,
                requested_by=actor.id,
                notes="New insurance type",
                context=context,
            )
            await self.audit.record(
                AuditAction.TYPE_CREATE,
                entity_type="type",
                entity_id=insurance_type.id,
                user_id=actor.id,
                details={"code": code, "approval_id": approval.id},
                context=context,
            )

        LOGGER.info("Insurance type created", extra={"type_id": insurance_type.id, "code": code})
        return insurance_type, approval

    async def list_bonds(self, actor: CurrentUser, skip: int = 0, limit: int = 50) -> List[Bond]:
        filters = {} if actor.is_regulator else {"company_id": actor.company_id}
        return await self.bonds.get_all(skip=skip, limit=limit, filters=filters)

    async def list_insurance_types(
        self, approval_status: Optional[str] = None, skip: int = 0, limit: int = 50
    ) -> List[InsuranceType]:
        return await self.types.get_all(skip=skip, limit=limit, filters={"approval_status": approval_status})
