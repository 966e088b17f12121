"""Approval workflow engine.

One state machine for every reviewable entity kind: a row starts
``pending`` and ends ``approved`` or ``declined``.

Terminal rows never change again; a later request for the same entity opens
a new row so the history is preserved. A decision, the entity status it
implies and its audit entry are committed together; the broadcast happens
only after the commit succeeded.
"""

from typing import Any, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ivas.core.exceptions import (
    AlreadyDecidedError,
    DuplicatePendingError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ivas.database.models import Approval
from ivas.repositories.approval_repository import ApprovalRepository
from ivas.schemas.enums import ApprovalDecision, ApprovalEntityType, ApprovalStatus, AuditSeverity
from ivas.services.approval_handlers import ApprovalHandler, handler_for
from ivas.services.audit_service import AuditAction, AuditContext, AuditService
from ivas.services.base_service import BaseService
from ivas.services.realtime.hub import EventHub
from ivas.utils.clock import utc_now
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ApprovalService(BaseService):
    """Service for opening and deciding approval requests."""

    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None):
        super().__init__(session, hub)
        self.repository = ApprovalRepository(session)
        self.audit = AuditService(session)

    async def _load_entity(self, handler: ApprovalHandler, entity_id: int) -> Any:
        entity = await handler.load(self.session, entity_id)
        if entity is None:
            raise NotFoundError(handler.label, entity_id)
        return entity

    async def open_request(
        self,
        entity_type: ApprovalEntityType,
        entity: Any,
        requested_by: Optional[int] = None,
        notes: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Approval:
        """Create a pending approval inside the caller's transaction.

        Raises:
            DuplicatePendingError: An open request already exists for the entity
        """
        handler = handler_for(entity_type)
        handler.check_submittable(entity)

        existing = await self.repository.get_pending_for(entity_type.value, entity.id)
        if existing is not None:
            raise DuplicatePendingError(entity_type.value, entity.id, existing.id)

        try:
            approval = await self.repository.create(
                entity_type=entity_type.value,
                entity_id=entity.id,
                status=ApprovalStatus.PENDING.value,
                requested_by=requested_by,
                notes=notes,
            )
        except IntegrityError as e:
            # Lost the race against a concurrent submit for the same entity
            raise DuplicatePendingError(entity_type.value, entity.id) from e

        handler.apply_submitted(entity, approval)
        await self.audit.record(
            AuditAction.APPROVAL_SUBMIT,
            entity_type=entity_type.value,
            entity_id=entity.id,
            user_id=requested_by,
            details={"approval_id": approval.id, "notes": notes},
            severity=AuditSeverity.LOW,
            context=context,
        )
        return approval

    async def submit(
        self,
        entity_type: ApprovalEntityType | str,
        entity_id: int,
        requested_by: Optional[int] = None,
        notes: Optional[str] = None,
        context: Optional[AuditContext] = None,
        company_scope: Optional[int] = None,
    ) -> Approval:
        """Open a new pending approval for an existing entity.

        Args:
            company_scope: When set, the entity must belong to this company

        Raises:
            NotFoundError: The entity does not exist
            PermissionDeniedError: The entity belongs to another company
            DuplicatePendingError: An open request already exists for the entity
        """
        entity_type = ApprovalEntityType(entity_type)
        handler = handler_for(entity_type)

        async with self.unit_of_work():
            entity = await self._load_entity(handler, entity_id)
            if company_scope is not None and handler.company_id(entity) != company_scope:
                raise PermissionDeniedError(f"{handler.label} {entity_id} does not belong to your company")
            approval = await self.open_request(entity_type, entity, requested_by, notes, context)

        LOGGER.info(
            "Approval requested",
            extra={"approval_id": approval.id, "entity_type": entity_type.value, "entity_id": entity_id},
        )
        return approval

    async def decide(
        self,
        approval_id: int,
        decision: ApprovalDecision | str,
        approver_id: Optional[int],
        reason: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> Approval:
        """Approve or decline a pending request.

        The approval row and the target entity change in one transaction;
        either both are committed or neither is.

        Raises:
            ValidationError: Declining without a reason
            NotFoundError: Unknown approval, or its entity disappeared
            AlreadyDecidedError: The approval is no longer pending
        """
        decision = ApprovalDecision(decision)
        reason = reason.strip() if reason else None
        if decision == ApprovalDecision.DECLINED and not reason:
            raise ValidationError("A reason is required when declining an approval")

        status = ApprovalStatus(decision.value)
        now = utc_now()

        async with self.unit_of_work():
            approval = await self.repository.get_by_id(approval_id)
            if approval is None:
                raise NotFoundError("Approval", approval_id)

            handler = handler_for(approval.entity_type)
            moved = await self.repository.decide_if_pending(approval_id, status.value, approver_id, reason, now)
            if not moved:
                current = await self.repository.reload(approval_id)
                if current is None:
                    raise NotFoundError("Approval", approval_id)
                raise AlreadyDecidedError(approval_id, current.status)

            approval = await self.repository.reload(approval_id)
            entity = await self._load_entity(handler, approval.entity_id)
            if status == ApprovalStatus.APPROVED:
                handler.apply_approved(entity, approval, approver_id, now)
            else:
                handler.apply_declined(entity, approval, approver_id, reason, now)
            await self.session.flush()

            await self.audit.record(
                AuditAction.APPROVAL_APPROVE if status == ApprovalStatus.APPROVED else AuditAction.APPROVAL_DECLINE,
                entity_type=approval.entity_type,
                entity_id=approval.entity_id,
                user_id=approver_id,
                details={"approval_id": approval_id, "decision": status.value, "reason": reason},
                severity=AuditSeverity.HIGH if status == ApprovalStatus.DECLINED else AuditSeverity.MEDIUM,
                context=context,
            )

        LOGGER.info(
            "Approval decided",
            extra={"approval_id": approval_id, "entity_type": approval.entity_type, "decision": status.value},
        )
        self.broadcast(handler.event_name(status), handler.payload(entity, approval), handler.scope(entity))
        return approval

    async def get_approval(self, approval_id: int) -> Approval:
        approval = await self.repository.get_by_id(approval_id)
        if approval is None:
            raise NotFoundError("Approval", approval_id)
        return approval

    async def list_approvals(
        self,
        status: Optional[str] = None,
        entity_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Approval], int]:
        filters = {"status": status, "entity_type": entity_type}
        items = await self.repository.get_all(skip=skip, limit=limit, filters=filters)
        total = await self.repository.count(filters)
        return items, total

    async def history(self, entity_type: ApprovalEntityType | str, entity_id: int) -> List[Approval]:
        return await self.repository.get_history(ApprovalEntityType(entity_type).value, entity_id)
