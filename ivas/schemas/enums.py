"""Status and classification enums shared by models, services and schemas."""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    OFFICER = "officer"
    COMPANY = "company"
    CBL = "cbl"
    INSURER = "insurer"
    INSURED = "insured"


class RegistrationStatus(str, Enum):
    """Company registration lifecycle."""

    PENDING = "pending"
    APPROVED = "approved"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class ApprovalDecision(str, Enum):
    """The two terminal outcomes a reviewer can choose."""

    APPROVED = "approved"
    DECLINED = "declined"


class ApprovalEntityType(str, Enum):
    INSURER = "insurer"
    POLICY = "policy"
    USER = "user"
    BOND = "bond"
    TYPE = "type"


class VerificationStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    FAKE = "fake"
    NOT_FOUND = "not_found"
    PENDING = "pending"


class VerificationMethod(str, Enum):
    MANUAL = "manual"
    QR_SCAN = "qr_scan"
    API = "api"


class ClaimStatus(str, Enum):
    REPORTED = "reported"
    SETTLED = "settled"
    DENIED = "denied"


class CoverageType(str, Enum):
    TREATY = "treaty"
    FACULTATIVE = "facultative"
    CO_INSURED = "co_insured"


class AuditSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
