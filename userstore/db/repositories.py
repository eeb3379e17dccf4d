"""Repository protocol and backend-agnostic user rules."""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Protocol

from userstore.db.context import (
    RequestContext,
    deadline_from_context,
    user_id_from_context,
)
from userstore.errors import InternalError, UnauthorizedError, UserStoreError
from userstore.models.user import User, UserFilter, UserUpdate
from userstore.utils.logging import StructuredRepoLogger
from userstore.utils.metrics import PrometheusRepoMetrics


class UserRepository(Protocol):
    """Repository for user lifecycle operations."""

    def create_user(self, ctx: RequestContext, user: User) -> None:
        """Create a new user.

        Stamps timestamps and assigns ``user.id`` in place on success.

        Args:
            ctx: Request context
            user: User to persist (id must be 0)

        Raises:
            InvalidArgumentError: If the user fails validation
            ConflictError: If the email is already taken
        """
        ...

    def delete_user(self, ctx: RequestContext, user_id: int) -> None:
        """Delete a user owned by the acting identity.

        Raises:
            NotFoundError: If no user has this id
            UnauthorizedError: If the acting identity is not the user
        """
        ...

    def update_user(self, ctx: RequestContext, user_id: int, patch: UserUpdate) -> User:
        """Apply a sparse patch to a user owned by the acting identity.

        Returns:
            The merged, persisted user

        Raises:
            NotFoundError: If no user has this id
            UnauthorizedError: If the acting identity is not the user
            InvalidArgumentError: If the merged user fails validation
            ConflictError: If the new email is already taken
        """
        ...

    def find_user_by_id(self, ctx: RequestContext, user_id: int) -> User:
        """Get user by id.

        Raises:
            NotFoundError: If no user has this id
        """
        ...

    def find_user_by_email(self, ctx: RequestContext, email: str) -> User:
        """Get user by email.

        Raises:
            NotFoundError: If no user has this email
        """
        ...

    def find_users(self, ctx: RequestContext, filters: UserFilter) -> tuple[list[User], int]:
        """Search users.

        Returns:
            Tuple of (page of users ordered by id, total matches ignoring pagination)
        """
        ...


def authorize_owner(ctx: RequestContext, user: User) -> None:
    """Ensure the acting identity is the target user.

    Raises:
        UnauthorizedError: If the context carries no identity or another one
    """
    if user_id_from_context(ctx) != user.id:
        raise UnauthorizedError(f"not allowed to modify user {user.id}")


def check_deadline(ctx: RequestContext) -> None:
    """Abort when the context deadline has passed.

    Raises:
        InternalError: With ``timed_out`` set
    """
    deadline = deadline_from_context(ctx)
    if deadline is not None and time.monotonic() >= deadline:
        raise InternalError("request deadline exceeded", timed_out=True)


def apply_user_update(user: User, patch: UserUpdate, now: datetime) -> User:
    """Return a copy of user with the patch's present fields and updated_at applied."""
    changes: dict[str, object] = dict(patch.present_fields())
    changes["updated_at"] = now
    return user.model_copy(update=changes)


_logger = StructuredRepoLogger()
_metrics = PrometheusRepoMetrics()


@contextmanager
def observe_operation(backend: str, operation: str, ctx: RequestContext) -> Iterator[None]:
    """Log and time one repository call, counting failures by error code."""
    start = time.perf_counter()
    outcome = "success"
    error_message = None
    try:
        yield
    except UserStoreError as exc:
        outcome = exc.code.value
        error_message = exc.message
        _metrics.inc_error(operation, outcome)
        raise
    except Exception as exc:
        outcome = "error"
        error_message = str(exc)
        raise
    finally:
        latency_ms = (time.perf_counter() - start) * 1000
        _metrics.record_latency(operation, outcome, latency_ms)
        _logger.log_operation(
            backend,
            operation,
            outcome,
            latency_ms,
            user_id_from_context(ctx),
            error_message,
        )
