"""Repository layer modules."""

from ivas.repositories.approval_repository import ApprovalRepository
from ivas.repositories.audit_repository import AuditRepository
from ivas.repositories.base_repository import BaseRepository
from ivas.repositories.bond_repository import BondRepository, InsuranceTypeRepository
from ivas.repositories.claim_repository import ClaimRepository
from ivas.repositories.company_repository import CompanyRepository
from ivas.repositories.counter_repository import PolicyCounterRepository
from ivas.repositories.policy_repository import PolicyRepository
from ivas.repositories.user_repository import UserRepository
from ivas.repositories.verification_repository import VerificationRepository

__all__ = [
    "ApprovalRepository",
    "AuditRepository",
    "BaseRepository",
    "BondRepository",
    "ClaimRepository",
    "CompanyRepository",
    "InsuranceTypeRepository",
    "PolicyCounterRepository",
    "PolicyRepository",
    "UserRepository",
    "VerificationRepository",
]
