"""Custom exception hierarchy.

Every error carries a stable ``code`` and the HTTP status the API layer
answers with. ``retryable`` tells clients whether repeating the same call can
succeed without a state change on their side.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for application errors."""

    code = "INTERNAL_ERROR"
    http_status = 500
    retryable = False

    def __init__(
        self,
        message: str,
        original_error: Exception = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}


class DatabaseError(AppError):
    """Raised when a database operation fails."""

    code = "DATABASE_ERROR"


class ValidationError(AppError):
    """Raised when input validation fails."""

    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(AppError):
    """Raised when a referenced record does not exist."""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, entity_id: Any, message: Optional[str] = None):
        super().__init__(message or f"{entity} {entity_id} not found", details={"entity": entity, "id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class AuthenticationError(AppError):
    """Raised when a bearer token is missing, invalid or expired."""

    code = "AUTHENTICATION_FAILED"
    http_status = 401


class PermissionDeniedError(AppError):
    """Raised when the caller's role does not allow the operation."""

    code = "ACCESS_DENIED"
    http_status = 403


class ConflictError(AppError):
    """Raised when the requested change collides with the current state."""

    code = "CONFLICT"
    http_status = 409


class DuplicatePendingError(ConflictError):
    """An open approval already exists for the same entity."""

    code = "DUPLICATE_PENDING"

    def __init__(self, entity_type: str, entity_id: int, approval_id: Optional[int] = None):
        super().__init__(
            f"A pending {entity_type} approval already exists for {entity_type} {entity_id}",
            details={"entity_type": entity_type, "entity_id": entity_id, "approval_id": approval_id},
        )


class AlreadyDecidedError(ConflictError):
    """The approval has already reached a terminal state."""

    code = "ALREADY_DECIDED"

    def __init__(self, approval_id: int, status: str):
        super().__init__(
            f"Approval {approval_id} is not pending (current status: {status})",
            details={"approval_id": approval_id, "status": status},
        )


class InvalidTransitionError(ConflictError):
    """A state machine transition is not legal from the current state."""

    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, entity_id: Any, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            message or f"{entity} {entity_id} cannot move from '{current}' to '{target}'",
            details={"entity": entity, "id": entity_id, "current": current, "target": target},
        )


class PolicyNumberConflictError(ConflictError):
    """The policy number (or its content hash) is already registered."""

    code = "POLICY_NUMBER_CONFLICT"

    def __init__(self, policy_number: str, retryable: bool = False):
        super().__init__(
            f"Policy number {policy_number} is already registered",
            details={"policy_number": policy_number},
        )
        # Allocated numbers can be re-drawn; caller-supplied ones cannot.
        self.retryable = retryable


class RetryableAllocationError(AppError):
    """The atomic counter increment failed; the caller may retry with backoff."""

    code = "ALLOCATION_RETRY"
    http_status = 503
    retryable = True


class ChannelAbandonedError(AppError):
    """The realtime client gave up after its consecutive reconnect cap."""

    code = "CHANNEL_ABANDONED"
    http_status = 503

    def __init__(self, attempts: int, original_error: Exception = None):
        super().__init__(
            f"Realtime channel abandoned after {attempts} failed connection attempts",
            original_error=original_error,
            details={"attempts": attempts},
        )
        self.attempts = attempts
