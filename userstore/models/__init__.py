"""Models package - re-exports for convenience."""

from userstore.models.user import User, UserFilter, UserUpdate, validate_user

__all__ = [
    "User",
    "UserFilter",
    "UserUpdate",
    "validate_user",
]
