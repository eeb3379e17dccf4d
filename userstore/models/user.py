"""User entity, filter and patch models plus field validation."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from userstore.errors import InvalidArgumentError


class User(BaseModel):
    """User record.

    ``id`` is 0 until the repository assigns one on create. Timestamps are
    stamped by the repository, never by callers.
    """

    id: int = 0
    name: str = ""
    email: str = ""
    password: str | None = Field(default=None, repr=False)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserFilter(BaseModel):
    """Equality filters plus pagination for user search.

    A limit or offset of zero or less means unbounded / no offset.
    """

    id: int | None = None
    name: str | None = None
    email: str | None = None

    limit: int = 0
    offset: int = 0


class UserUpdate(BaseModel):
    """Sparse patch for a user.

    Only fields explicitly set (see ``model_fields_set``) are applied; an
    unset field leaves the stored value unchanged. Setting ``password`` to
    None clears it.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    email: str | None = None
    password: str | None = Field(default=None, repr=False)

    def present_fields(self) -> dict[str, str | None]:
        """Return the fields this patch carries, by name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


def validate_user(
    user: User, *, require_id: bool = False, require_password: bool = False
) -> None:
    """Check field invariants before a write.

    Args:
        user: Record about to be written
        require_id: Demand a persisted (non-zero) id, as on update
        require_password: Deployment profile requires a password

    Raises:
        InvalidArgumentError: If any invariant is violated
    """
    if require_id and user.id == 0:
        raise InvalidArgumentError("id is required")

    if not user.name:
        raise InvalidArgumentError("name is required")

    if not user.email:
        raise InvalidArgumentError("email is required")

    if user.password is not None and len(user.password) == 0:
        raise InvalidArgumentError("password cannot be empty if provided")

    if require_password and user.password is None:
        raise InvalidArgumentError("password is required")
