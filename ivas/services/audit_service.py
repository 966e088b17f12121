"""Audit recorder.

Every state transition appends one entry inside the same transaction as the
transition itself, so a rolled back change leaves no audit trace behind.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ivas.database.models import AuditLog
from ivas.repositories.audit_repository import AuditRepository
from ivas.schemas.enums import AuditSeverity, AuditStatus
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AuditAction(str, Enum):
    COMPANY_REGISTER = "COMPANY_REGISTER"
    COMPANY_RENEW = "COMPANY_RENEW"
    COMPANY_SUSPEND = "COMPANY_SUSPEND"
    COMPANY_REINSTATE = "COMPANY_REINSTATE"
    COMPANY_EXPIRE = "COMPANY_EXPIRE"
    POLICY_CREATE = "POLICY_CREATE"
    POLICY_DEACTIVATE = "POLICY_DEACTIVATE"
    BOND_CREATE = "BOND_CREATE"
    TYPE_CREATE = "TYPE_CREATE"
    APPROVAL_SUBMIT = "APPROVAL_SUBMIT"
    APPROVAL_APPROVE = "APPROVAL_APPROVE"
    APPROVAL_DECLINE = "APPROVAL_DECLINE"
    DOCUMENT_VERIFY = "DOCUMENT_VERIFY"
    DOCUMENT_VERIFY_PUBLIC = "DOCUMENT_VERIFY_PUBLIC"
    CLAIM_REPORT = "CLAIM_REPORT"
    CLAIM_SETTLE = "CLAIM_SETTLE"
    CLAIM_DENY = "CLAIM_DENY"
    USER_CREATE = "USER_CREATE"


@dataclass(frozen=True)
class AuditContext:
    """Where a request came from."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditService:
    """Appends and queries audit entries."""

    def __init__(self, session: AsyncSession):
        self.repository = AuditRepository(session)

    async def record(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: Optional[int],
        user_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: AuditSeverity = AuditSeverity.MEDIUM,
        status: AuditStatus = AuditStatus.SUCCESS,
        error_message: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> AuditLog:
        """Append one entry to the current transaction."""
        context = context or AuditContext()
        entry = await self.repository.create(
            user_id=user_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            severity=severity.value,
            status=status.value,
            error_message=error_message,
        )
        LOGGER.debug(
            "Audit entry recorded",
            extra={"action": action.value, "entity_type": entity_type, "entity_id": entity_id},
        )
        return entry

    async def list_entries(
        self,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        user_id: Optional[int] = None,
        severity: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[AuditLog], int]:
        filters = {
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "user_id": user_id,
            "severity": severity,
        }
        return await self.repository.search(filters, since=since, until=until, skip=skip, limit=limit)
