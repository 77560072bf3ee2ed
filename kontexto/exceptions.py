"""Kontexto error types.

Every error the API reports on purpose derives from ``KontextoException``.
The exception handler turns it into ``{"error", "message", "details"}``
with the class's HTTP status.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    USER_NOT_FOUND = "USER_NOT_FOUND"
    CONTEXT_NOT_FOUND = "CONTEXT_NOT_FOUND"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class KontextoException(Exception):
    """Base error. Subclasses pin ``error_code`` and ``status_code``."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code.value, "message": self.message, "details": self.details}


class _NotFound(KontextoException):
    status_code = 404
    label = "Resource"
    detail_key = "id"

    def __init__(self, ref: str):
        super().__init__(f"{self.label} not found: {ref}", {self.detail_key: ref})


class UserNotFoundError(_NotFound):
    error_code = ErrorCode.USER_NOT_FOUND
    label = "User"
    detail_key = "user"


class ContextNotFoundError(_NotFound):
    error_code = ErrorCode.CONTEXT_NOT_FOUND
    label = "Context"
    detail_key = "context_id"


class JobNotFoundError(_NotFound):
    error_code = ErrorCode.JOB_NOT_FOUND
    label = "Job"
    detail_key = "job_id"


class InvalidTransitionError(KontextoException):
    """The job's current status does not allow the requested move."""

    error_code = ErrorCode.INVALID_TRANSITION
    status_code = 409

    def __init__(self, job_id: str, current: str, target: str, reason: Optional[str] = None):
        message = f"Cannot move job {job_id} from '{current}' to '{target}'"
        if reason:
            message += f": {reason}"
        super().__init__(
            message, {"job_id": job_id, "current_status": current, "target_status": target}
        )
        self.job_id = job_id
        self.current = current
        self.target = target


class ValidationError(KontextoException):
    error_code = ErrorCode.VALIDATION_ERROR
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)


class AuthenticationError(KontextoException):
    error_code = ErrorCode.UNAUTHORIZED
    status_code = 401

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(message)


class ForbiddenError(KontextoException):
    error_code = ErrorCode.FORBIDDEN
    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class ConflictError(KontextoException):
    """A write lost against the current state of the row (stale status, unique index)."""

    error_code = ErrorCode.CONFLICT
    status_code = 409

    def __init__(self, resource_id: str, message: str = "Resource was modified concurrently"):
        super().__init__(message, {"resource_id": resource_id})


class DatabaseError(KontextoException):
    """A store operation failed. Driver errors are logged, never returned."""

    error_code = ErrorCode.DATABASE_ERROR

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, {"operation": operation} if operation else None)
