"""
Domain error taxonomy for leave management services.

Services raise these instead of HTTPException; app.core.errors maps them
to JSON responses using ``status_code``.
"""
from typing import Any, Dict, Optional


class LeaveManagementError(Exception):
    status_code = 400
    error_code = "BUSINESS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(LeaveManagementError):
    status_code = 404
    error_code = "NOT_FOUND"


class ForbiddenError(LeaveManagementError):
    status_code = 403
    error_code = "FORBIDDEN"


class ConflictError(LeaveManagementError):
    status_code = 409
    error_code = "CONFLICT"


class InvalidStateError(LeaveManagementError):
    """Transition attempted from a status that does not allow it."""
    status_code = 409
    error_code = "INVALID_STATE"


class ValidationError(LeaveManagementError):
    status_code = 422
    error_code = "VALIDATION_ERROR"


class InsufficientBalanceError(LeaveManagementError):
    status_code = 422
    error_code = "INSUFFICIENT_BALANCE"


class InternalError(LeaveManagementError):
    """Datastore or unexpected failure. The message is safe to show to callers."""
    status_code = 500
    error_code = "INTERNAL_ERROR"
