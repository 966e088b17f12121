"""User account management.

Creation is where the account invariants are enforced: company and insurer
users belong to an existing company, and an insured user may only list
policies whose holder ID number matches their own ``insured_id``. Accounts
created by regulators are active immediately; accounts a company adds for
itself wait on a ``user`` approval.
"""

from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ivas.database.models import Approval, User
from ivas.repositories.company_repository import CompanyRepository
from ivas.repositories.policy_repository import PolicyRepository
from ivas.repositories.user_repository import UserRepository
from ivas.schemas.auth import COMPANY_ROLES, CurrentUser
from ivas.schemas.enums import ApprovalEntityType, ApprovalStatus, AuditSeverity, UserRole
from ivas.schemas.user import UserCreateRequest
from ivas.services.approval_service import ApprovalService
from ivas.services.audit_service import AuditAction, AuditContext, AuditService
from ivas.services.base_service import BaseService
from ivas.services.realtime.hub import EventHub
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


def normalize_policy_numbers(policy_numbers: Optional[List[str]]) -> List[str]:
    """Trimmed, de-duplicated policy numbers in their original order."""
    seen: List[str] = []
    for number in policy_numbers or []:
        number = number.strip()
        if number and number not in seen:
            seen.append(number)
    return seen


class UserService(BaseService):
    """Service for creating and listing platform users."""

    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None):
        super().__init__(session, hub)
        self.repository = UserRepository(session)
        self.companies = CompanyRepository(session)
        self.policies = PolicyRepository(session)
        self.approval_service = ApprovalService(session, hub)
        self.audit = AuditService(session)

    async def create_user(
        self,
        data: UserCreateRequest,
        actor: CurrentUser,
        context: Optional[AuditContext] = None,
    ) -> Tuple[User, Optional[Approval]]:
        """Create a user account.

        Regulators may create any role. Company members may only add company
        or insurer users to their own company; those accounts start pending.

        Raises:
            PermissionDeniedError: The actor may not create this account
            ConflictError: The username or email is taken
            ValidationError: The company or policy references do not hold
        """
        company_id = self._check_actor(data, actor)
        policy_numbers = normalize_policy_numbers(data.policy_numbers)
        username = data.username.strip()
        insured_id = data.insured_id.strip() if data.insured_id else None
        if not username:
            raise ValidationError("Username must not be blank")
        if data.role != UserRole.INSURED and policy_numbers:
            raise ValidationError("Only insured users can hold policy numbers")
        if data.role in COMPANY_ROLES and company_id is None:
            raise ValidationError(f"A company is required for {data.role.value} users")

        async with self.unit_of_work():
            existing = await self.repository.get_by_username_or_email(username, data.email)
            if existing is not None:
                field = "username" if existing.username == username else "email"
                raise ConflictError(f"A user with this {field} already exists")
            if company_id is not None and await self.companies.get_by_id(company_id) is None:
                raise ValidationError(f"Company {company_id} does not exist")
            if data.role == UserRole.INSURED:
                await self._check_holdings(insured_id, policy_numbers)

            try:
                user = await self.repository.create(
                    username=username,
                    email=data.email,
                    full_name=data.full_name,
                    role=data.role.value,
                    company_id=company_id,
                    cbl_id=data.cbl_id,
                    insurer_id=data.insurer_id,
                    insured_id=insured_id,
                    policy_numbers=policy_numbers or None,
                    approval_status=ApprovalStatus.APPROVED.value,
                )
            except IntegrityError as e:
                raise ConflictError("A user with this username or email already exists", original_error=e) from e

            approval = None
            if not actor.is_regulator:
                approval = await self.approval_service.open_request(
                    ApprovalEntityType.USER,
                    user,
                    requested_by=actor.id,
                    notes="New user account",
                    context=context,
                )
            await self.audit.record(
                AuditAction.USER_CREATE,
                entity_type="user",
                entity_id=user.id,
                user_id=actor.id,
                details={
                    "username": user.username,
                    "email": user.email,
                    "role": user.role,
                    "company_id": user.company_id,
                },
                severity=AuditSeverity.HIGH,
                context=context,
            )

        LOGGER.info("User created", extra={"user_id": user.id, "role": user.role, "company_id": user.company_id})
        return user, approval

    async def list_company_users(self, company_id: int, actor: CurrentUser) -> List[User]:
        if not actor.is_regulator and actor.company_id != company_id:
            raise PermissionDeniedError("You can only list users of your own company")
        if await self.companies.get_by_id(company_id) is None:
            raise NotFoundError("Company", company_id)
        return await self.repository.get_company_users(company_id)

    def _check_actor(self, data: UserCreateRequest, actor: CurrentUser) -> Optional[int]:
        if actor.is_regulator:
            return data.company_id
        if not actor.is_company_member:
            raise PermissionDeniedError("Only regulators and company members can create users")
        if data.role not in COMPANY_ROLES:
            raise PermissionDeniedError("Company members can only add company or insurer users")
        if data.company_id is not None and data.company_id != actor.company_id:
            raise PermissionDeniedError("You can only add users to your own company")
        return actor.company_id

    async def _check_holdings(self, insured_id: Optional[str], policy_numbers: List[str]) -> None:
        if not policy_numbers:
            return
        if not insured_id:
            raise ValidationError("An insured user listing policies needs their holder ID number")
        found = {p.policy_number: p for p in await self.policies.get_by_numbers(policy_numbers)}
        unknown = [n for n in policy_numbers if n not in found]
        if unknown:
            raise ValidationError(f"Unknown policy numbers: {', '.join(unknown)}")
        foreign = [n for n in policy_numbers if found[n].holder_id_number != insured_id]
        if foreign:
            raise ValidationError(f"Policies not held by this holder: {', '.join(foreign)}")
