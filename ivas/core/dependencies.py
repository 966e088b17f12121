"""Centralized dependency injection for the FastAPI application.

Every service is built per request around the request's database session.
The event hub is created once by the application lifespan and read back from
``app.state``.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.database import get_async_session
from ivas.services.approval_service import ApprovalService
from ivas.services.audit_service import AuditContext, AuditService
from ivas.services.catalog_service import CatalogService
from ivas.services.claim_service import ClaimService
from ivas.services.company_service import CompanyService
from ivas.services.dashboard_service import DashboardService
from ivas.services.policy_numbering_service import PolicyNumberingService
from ivas.services.policy_service import PolicyService
from ivas.services.realtime.hub import EventHub
from ivas.services.user_service import UserService
from ivas.services.verification_service import VerificationService


def get_event_hub(request: Request) -> Optional[EventHub]:
    """Hub attached by the lifespan, or None when the app runs without one."""
    return getattr(request.app.state, "event_hub", None)


def get_audit_context(request: Request) -> AuditContext:
    """Caller address and agent recorded with every audit entry."""
    return AuditContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


SessionDep = Annotated[AsyncSession, Depends(get_async_session)]
HubDep = Annotated[Optional[EventHub], Depends(get_event_hub)]


async def get_verification_service(db_session: SessionDep, hub: HubDep) -> VerificationService:
    return VerificationService(db_session, hub)


async def get_approval_service(db_session: SessionDep, hub: HubDep) -> ApprovalService:
    return ApprovalService(db_session, hub)


async def get_claim_service(db_session: SessionDep, hub: HubDep) -> ClaimService:
    return ClaimService(db_session, hub)


async def get_company_service(db_session: SessionDep, hub: HubDep) -> CompanyService:
    return CompanyService(db_session, hub)


async def get_policy_service(db_session: SessionDep, hub: HubDep) -> PolicyService:
    return PolicyService(db_session, hub)


async def get_user_service(db_session: SessionDep, hub: HubDep) -> UserService:
    return UserService(db_session, hub)


async def get_catalog_service(db_session: SessionDep, hub: HubDep) -> CatalogService:
    return CatalogService(db_session, hub)


async def get_numbering_service(db_session: SessionDep) -> PolicyNumberingService:
    return PolicyNumberingService(db_session)


async def get_audit_service(db_session: SessionDep) -> AuditService:
    return AuditService(db_session)


async def get_dashboard_service(db_session: SessionDep) -> DashboardService:
    return DashboardService(db_session)
