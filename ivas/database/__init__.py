"""Database module for SQLAlchemy models and session management."""

from ivas.core.database import Base, DatabaseClient, close_database, db_client, engine, get_async_session, init_database
from ivas.database.models import (
    Approval,
    AuditLog,
    Bond,
    Claim,
    Company,
    InsuranceType,
    Policy,
    PolicyCounter,
    User,
    Verification,
)

__all__ = [
    "Base",
    "engine",
    "get_async_session",
    "DatabaseClient",
    "db_client",
    "init_database",
    "close_database",
    "Approval",
    "AuditLog",
    "Bond",
    "Claim",
    "Company",
    "InsuranceType",
    "Policy",
    "PolicyCounter",
    "User",
    "Verification",
]
