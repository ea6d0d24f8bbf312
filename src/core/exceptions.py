"""Custom exception classes for the Task Planner backend.

Every business failure is a subclass of ``TaskPlannerError`` carrying a stable
machine-readable ``error_code``, the HTTP status the transport layer answers
with, and a human-readable message. ``InternalError`` is the one kind that is
not a business rejection.
"""

import logging

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TaskPlannerError(Exception):
    """Base exception for all Task Planner errors."""

    error_code = "TASK_PLANNER_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        """Initialize the exception.

        Args:
            message: Optional message overriding the class default.
        """
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDeniedError(TaskPlannerError):
    """Raised when the operator lacks the required role or status."""

    error_code = "PERMISSION_DENIED"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class NotAMemberError(TaskPlannerError):
    """Raised when the target user is not an approved member of the class."""

    error_code = "NOT_A_MEMBER"
    default_message = "User is not an approved member of this class"


class AlreadyMemberError(TaskPlannerError):
    """Raised when applying to a class the user already belongs to."""

    error_code = "ALREADY_MEMBER"
    status_code = status.HTTP_409_CONFLICT
    default_message = "You are already a member of this class"


class DuplicatePendingError(TaskPlannerError):
    """Raised when the user already has a pending application for the class."""

    error_code = "DUPLICATE_PENDING"
    status_code = status.HTTP_409_CONFLICT
    default_message = "You already have a pending application for this class"


class NoPendingApplicationError(TaskPlannerError):
    """Raised when an approval targets a user without a pending application."""

    error_code = "NO_PENDING_APPLICATION"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No pending application found"


class CannotModifyOwnerError(TaskPlannerError):
    """Raised when an operation targets the class owner's membership."""

    error_code = "CANNOT_MODIFY_OWNER"
    default_message = "The class owner's membership cannot be modified"


class CannotModifySelfError(TaskPlannerError):
    """Raised when an operator tries to change their own role."""

    error_code = "CANNOT_MODIFY_SELF"
    default_message = "You cannot change your own role"


class InvalidActionError(TaskPlannerError):
    """Raised for an unknown approval action or an unassignable role."""

    error_code = "INVALID_ACTION"
    default_message = "Invalid action"


class InvalidRangeError(TaskPlannerError):
    """Raised for an unsupported sync range keyword."""

    error_code = "INVALID_RANGE"
    default_message = "Unsupported time range"

    def __init__(self, range_keyword: str):
        """Initialize the exception.

        Args:
            range_keyword: The rejected range keyword.
        """
        self.range_keyword = range_keyword
        super().__init__(f"Unsupported time range: '{range_keyword}'")


class TaskNotFoundError(TaskPlannerError):
    """Raised when a task does not exist or has been deleted."""

    error_code = "TASK_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Task not found"

    def __init__(self, task_id: int):
        """Initialize the exception.

        Args:
            task_id: The ID of the task that was not found.
        """
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found")


class TaskNotAccessibleError(TaskPlannerError):
    """Raised when the caller cannot see the task."""

    error_code = "TASK_NOT_ACCESSIBLE"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have access to this task"


class ClassNotFoundError(TaskPlannerError):
    """Raised when a class cannot be found by id or invite code."""

    error_code = "CLASS_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Class not found"


class UnauthenticatedError(TaskPlannerError):
    """Raised when no valid caller identity is present."""

    error_code = "UNAUTHENTICATED"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid authentication credentials"


class UserAlreadyExistsError(TaskPlannerError):
    """Raised when registering a taken username or email."""

    error_code = "USER_ALREADY_EXISTS"
    status_code = status.HTTP_409_CONFLICT
    default_message = "User already exists"


class UserNotFoundError(TaskPlannerError):
    """Raised when a user cannot be found."""

    error_code = "USER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class InvalidCredentialsError(TaskPlannerError):
    """Raised when a username/password pair does not match."""

    error_code = "INVALID_CREDENTIALS"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Incorrect username or password"


class InvalidTokenError(TaskPlannerError):
    """Raised for an unknown email verification token."""

    error_code = "INVALID_TOKEN"
    default_message = "Invalid verification link"


class ExpiredTokenError(TaskPlannerError):
    """Raised for an expired email verification token."""

    error_code = "EXPIRED_TOKEN"
    default_message = "Verification link has expired, please request a new one"


class AlreadyVerifiedError(TaskPlannerError):
    """Raised when resending verification to an already verified email."""

    error_code = "ALREADY_VERIFIED"
    default_message = "This email is already verified"


class InternalError(TaskPlannerError):
    """Raised for unclassified storage or runtime faults.

    The message is fixed so that storage details never reach the client.
    """

    error_code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self):
        super().__init__()


# --- FastAPI exception handlers ---


def _error_response(status_code: int, error_code: str, detail, **extra):
    content = {"error_code": error_code, "detail": detail}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def task_planner_exception_handler(request, exc: TaskPlannerError):
    """Map a business error to its status code and stable error code."""
    logger.warning("Business error: %s - %s", exc.error_code, exc.message)
    return _error_response(exc.status_code, exc.error_code, exc.message)


async def validation_exception_handler(request, exc):
    """Request validation exception handler."""
    logger.warning("Request validation failed: %s", exc.errors())
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request parameter validation failed",
        errors=jsonable_encoder(exc.errors()),
    )


async def unhandled_exception_handler(request, exc: Exception):
    """Catch-all handler; storage details are logged, never returned."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        InternalError.status_code, InternalError.error_code, InternalError.default_message
    )
