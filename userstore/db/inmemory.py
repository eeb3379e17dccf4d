"""In-memory implementation of the user repository."""

import threading
from datetime import datetime, timezone

from userstore.db.context import RequestContext
from userstore.db.repositories import (
    apply_user_update,
    authorize_owner,
    check_deadline,
    observe_operation,
)
from userstore.errors import ConflictError, NotFoundError
from userstore.models.user import User, UserFilter, UserUpdate, validate_user


class InMemoryUserRepository:
    """In-memory implementation of UserRepository.

    Stores copies of users keyed by id; ids are assigned sequentially from 1.
    A lock makes each call atomic.
    """

    backend = "inmemory"

    def __init__(self, *, require_password: bool = False) -> None:
        self._users: dict[int, User] = {}
        self._next_id = 1
        self._require_password = require_password
        self._lock = threading.Lock()

    def create_user(self, ctx: RequestContext, user: User) -> None:
        """Create a new user and assign its id."""
        with observe_operation(self.backend, "create_user", ctx), self._lock:
            check_deadline(ctx)

            now = datetime.now(timezone.utc)
            user.created_at = now
            user.updated_at = now
            validate_user(user, require_password=self._require_password)
            self._ensure_email_free(user.email)

            user.id = self._next_id
            self._next_id += 1
            self._users[user.id] = user.model_copy()

    def delete_user(self, ctx: RequestContext, user_id: int) -> None:
        """Delete a user owned by the acting identity."""
        with observe_operation(self.backend, "delete_user", ctx), self._lock:
            check_deadline(ctx)

            user = self._get(user_id)
            authorize_owner(ctx, user)
            del self._users[user_id]

    def update_user(self, ctx: RequestContext, user_id: int, patch: UserUpdate) -> User:
        """Apply a sparse patch to a user owned by the acting identity."""
        with observe_operation(self.backend, "update_user", ctx), self._lock:
            check_deadline(ctx)

            user = self._get(user_id)
            authorize_owner(ctx, user)

            merged = apply_user_update(user, patch, datetime.now(timezone.utc))
            validate_user(merged, require_id=True, require_password=self._require_password)
            if merged.email != user.email:
                self._ensure_email_free(merged.email)

            self._users[user_id] = merged
            return merged.model_copy()

    def find_user_by_id(self, ctx: RequestContext, user_id: int) -> User:
        """Get user by id."""
        with observe_operation(self.backend, "find_user_by_id", ctx), self._lock:
            check_deadline(ctx)
            return self._get(user_id).model_copy()

    def find_user_by_email(self, ctx: RequestContext, email: str) -> User:
        """Get user by email."""
        with observe_operation(self.backend, "find_user_by_email", ctx), self._lock:
            check_deadline(ctx)
            for user in self._users.values():
                if user.email == email:
                    return user.model_copy()
            raise NotFoundError(f"user with email {email!r} not found")

    def find_users(self, ctx: RequestContext, filters: UserFilter) -> tuple[list[User], int]:
        """Search users."""
        with observe_operation(self.backend, "find_users", ctx), self._lock:
            check_deadline(ctx)

            matches = [
                user
                for _, user in sorted(self._users.items())
                if (filters.id is None or user.id == filters.id)
                and (filters.name is None or user.name == filters.name)
                and (filters.email is None or user.email == filters.email)
            ]

            start = filters.offset if filters.offset > 0 else 0
            end = start + filters.limit if filters.limit > 0 else None
            page = [user.model_copy() for user in matches[start:end]]

            return page, len(matches)

    def _get(self, user_id: int) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        return user

    def _ensure_email_free(self, email: str) -> None:
        if any(user.email == email for user in self._users.values()):
            raise ConflictError(f"email {email!r} is already in use")
