"""Typed task engine errors and their classification into user-facing responses."""

from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Lifecycle errors
    ERR_INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    ERR_GRACE_PERIOD_EXPIRED = "ERR_GRACE_PERIOD_EXPIRED"

    # Allocation errors
    ERR_NO_ELIGIBLE_STAFF = "ERR_NO_ELIGIBLE_STAFF"
    ERR_CONCURRENT_MODIFICATION = "ERR_CONCURRENT_MODIFICATION"

    # Lookup errors
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_STAFF_NOT_FOUND = "ERR_STAFF_NOT_FOUND"

    # Input and access errors
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_TASK_IN_USE = "ERR_TASK_IN_USE"

    # Service errors
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class TaskEngineError(Exception):
    """Base class for every error raised by the task engine."""

    code: str = ErrorCode.ERR_UNKNOWN
    http_status: int = 500

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidTransition(TaskEngineError):
    """The requested status change is not allowed from the current status."""

    code = ErrorCode.ERR_INVALID_TRANSITION
    http_status = 409


class GracePeriodExpired(TaskEngineError):
    """The task was completed and its edit window has elapsed."""

    code = ErrorCode.ERR_GRACE_PERIOD_EXPIRED
    http_status = 423


class NoEligibleStaff(TaskEngineError):
    code = ErrorCode.ERR_NO_ELIGIBLE_STAFF
    http_status = 409


class ConcurrentModification(TaskEngineError):
    """A conditional write lost to a concurrent writer twice in a row."""

    code = ErrorCode.ERR_CONCURRENT_MODIFICATION
    http_status = 409


class TaskNotFound(TaskEngineError):
    code = ErrorCode.ERR_TASK_NOT_FOUND
    http_status = 404


class StaffNotFound(TaskEngineError):
    code = ErrorCode.ERR_STAFF_NOT_FOUND
    http_status = 404


class TaskValidationError(TaskEngineError):
    code = ErrorCode.ERR_VALIDATION
    http_status = 422


class PermissionDenied(TaskEngineError):
    code = ErrorCode.ERR_PERMISSION_DENIED
    http_status = 403


class TaskInUse(TaskEngineError):
    """The task is linked into a workflow chain and cannot be removed."""

    code = ErrorCode.ERR_TASK_IN_USE
    http_status = 409


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_TYPED_RESPONSES: dict[type[TaskEngineError], tuple[str, ErrorSeverity]] = {
    InvalidTransition: (
        "Check the task's current status; some changes are only allowed from specific states.",
        ErrorSeverity.LOW,
    ),
    GracePeriodExpired: (
        "Completed tasks can only be edited shortly after completion. Create a new task instead.",
        ErrorSeverity.LOW,
    ),
    NoEligibleStaff: (
        "Nobody in that department is available. Assign the task manually or try again later.",
        ErrorSeverity.MEDIUM,
    ),
    ConcurrentModification: (
        "Someone else changed this task at the same time. Reload it and try again.",
        ErrorSeverity.LOW,
    ),
    TaskNotFound: ("Refresh the task list; the task may have been deleted.", ErrorSeverity.LOW),
    StaffNotFound: ("Pick an active staff member from the directory.", ErrorSeverity.LOW),
    TaskValidationError: ("Correct the highlighted fields and submit again.", ErrorSeverity.LOW),
    PermissionDenied: (
        "Only the assigned staff member or a manager can do this.",
        ErrorSeverity.MEDIUM,
    ),
    TaskInUse: (
        "This task is part of a workflow chain. Cancel it instead of deleting it.",
        ErrorSeverity.LOW,
    ),
}

_NETWORK_PHRASES = ("connection", "timeout", "network", "unreachable", "502", "503", "504")


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    for error_type, (suggestion, severity) in _TYPED_RESPONSES.items():
        if isinstance(exception, error_type):
            return ErrorResponse(
                code=exception.code,
                message=exception.message,
                suggestion=suggestion,
                severity=severity,
            )

    if isinstance(exception, PermissionError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="You don't have permission for this action.",
            suggestion="Contact a manager if you think this is an error.",
            severity=ErrorSeverity.MEDIUM,
        )

    error_str = str(exception).lower()
    if isinstance(exception, ConnectionError | TimeoutError) or any(
        phrase in error_str for phrase in _NETWORK_PHRASES
    ):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message="Network error occurred.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
