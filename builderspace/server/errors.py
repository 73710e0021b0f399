"""Domain error taxonomy.

Managers and services raise these; the HTTP layer maps them to status codes
through ``status_code`` and ``code`` (see the exception handler in
``app.py``).  Each class also derives from the closest builtin so callers
can keep catching ``LookupError`` / ``PermissionError`` / ``ValueError``.
"""

from __future__ import annotations

from fastapi import status


class BuilderSpaceError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "unexpected_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(BuilderSpaceError, LookupError):
    """A workspace, application, post, link, task or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class UnauthorizedError(BuilderSpaceError, PermissionError):
    """The caller lacks the membership or role the operation requires."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"


class ValidationError(BuilderSpaceError, ValueError):
    """Caller-supplied content is empty, too long or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class FounderRemovalError(ValidationError):
    """Raised when removing a member whose role is founder."""

    code = "founder_removal"


class ConflictError(BuilderSpaceError):
    """Duplicate membership or concurrent-write contention."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class AlreadyMemberError(ConflictError):
    """The user already holds a team membership for the post."""

    code = "already_member"


class ConcurrentOperationError(ConflictError):
    """A wrapped write kept conflicting until the retry budget ran out."""

    code = "concurrent_operation_failed"

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Concurrent operation failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class TransientStorageError(BuilderSpaceError):
    """Lock contention, busy resource or timeout; safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "transient_storage_error"


class UnexpectedError(BuilderSpaceError):
    """Anything that does not fit the categories above."""
