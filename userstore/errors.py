"""Error taxonomy for user data access.

Every failure surfaced by a repository is a UserStoreError subclass tagged
with an ErrorCode. Callers map codes to their own presentation.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Kind of repository failure."""

    invalid = "invalid"
    not_found = "not_found"
    unauthorized = "unauthorized"
    conflict = "conflict"
    internal = "internal"


class UserStoreError(Exception):
    """Base class for all repository errors."""

    code: ErrorCode = ErrorCode.internal

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"code='{self.code.value}' message='{self.message}'"


class InvalidArgumentError(UserStoreError):
    """Entity failed validation."""

    code = ErrorCode.invalid


class NotFoundError(UserStoreError):
    """No row matches the requested key."""

    code = ErrorCode.not_found


class UnauthorizedError(UserStoreError):
    """Acting identity does not own the target resource."""

    code = ErrorCode.unauthorized


class ConflictError(UserStoreError):
    """Unique constraint violated."""

    code = ErrorCode.conflict


class InternalError(UserStoreError):
    """Driver, connection or transaction failure.

    ``timed_out`` is set when the request deadline expired and the
    transaction was abandoned.
    """

    code = ErrorCode.internal

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out
