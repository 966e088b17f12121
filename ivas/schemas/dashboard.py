from typing import Dict

from pydantic import BaseModel, Field


class DashboardStats(BaseModel):
    """Regulator overview counts."""

    companies: Dict[str, int] = Field(default_factory=dict, description="Companies per registration status")
    policies: Dict[str, int] = Field(default_factory=dict, description="Policies per approval status")
    claims: Dict[str, int] = Field(default_factory=dict, description="Claims per status")
    verifications: Dict[str, int] = Field(default_factory=dict, description="Verifications per outcome")
    pending_approvals: Dict[str, int] = Field(default_factory=dict, description="Open approvals per entity type")
