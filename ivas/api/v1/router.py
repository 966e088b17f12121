from fastapi import APIRouter

from ivas.api.v1.endpoints import (
    approvals,
    audit,
    catalog,
    claims,
    companies,
    dashboard,
    health,
    policies,
    public,
    users,
    verifications,
)

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(companies.router, prefix="/companies", tags=["Companies"])
api_router.include_router(policies.router, prefix="/policies", tags=["Policies"])
api_router.include_router(verifications.router, prefix="/verifications", tags=["Verifications"])
api_router.include_router(public.router, prefix="/public", tags=["Public"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["Approvals"])
api_router.include_router(claims.router, prefix="/claims", tags=["Claims"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])
api_router.include_router(audit.router, prefix="/audit", tags=["Audit"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])

__all__ = ["api_router"]
