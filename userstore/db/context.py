"""Request context carrying per-request values such as the acting user.

Contexts are immutable and parent-linked: deriving a context with a new value
creates a child node layered under the context passed in, and lookups walk
from the node up through its ancestors. Nothing is ever mutated, so a context
can be handed across threads without locking.
"""

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Union

from userstore.models.user import User

ContextValue = Union[str, int, float, bool, User, None]

USER_KEY = "user"
# Internal key; callers set deadlines through with_deadline only.
_DEADLINE_KEY = "userstore.deadline"

# Identity reported when no user is attached; persisted ids are never 0.
NO_USER_ID = 0

_ALLOWED_TYPES = (str, int, float, bool, User, type(None))
_MISSING = object()


@dataclass(frozen=True)
class RequestContext:
    """Immutable node in a chain of request contexts."""

    parent: "RequestContext | None" = None
    values: Mapping[str, ContextValue] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def _lookup(self, key: str) -> object:
        ctx: RequestContext | None = self
        while ctx is not None:
            if key in ctx.values:
                return ctx.values[key]
            ctx = ctx.parent
        return _MISSING

    def value(self, key: str, default: ContextValue = None) -> ContextValue:
        """Return the nearest value stored under key, or default if absent."""
        found = self._lookup(key)
        if found is _MISSING:
            return default
        return found  # type: ignore[return-value]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._lookup(key) is not _MISSING

    def with_value(self, key: str, value: ContextValue) -> "RequestContext":
        """Derive a child context holding key, shadowing any ancestor value."""
        if not isinstance(value, _ALLOWED_TYPES):
            raise TypeError(
                f"unsupported context value type for {key!r}: {type(value).__name__}"
            )
        return RequestContext(parent=self, values=MappingProxyType({key: value}))


def background() -> RequestContext:
    """Return an empty root context."""
    return RequestContext()


def with_value(ctx: RequestContext, key: str, value: ContextValue) -> RequestContext:
    return ctx.with_value(key, value)


def with_user(ctx: RequestContext, user: User) -> RequestContext:
    """Attach the authenticated user to the context."""
    return ctx.with_value(USER_KEY, user)


def user_id_from_context(ctx: RequestContext) -> int:
    """Return the acting user's id, or NO_USER_ID if no user is attached."""
    user = ctx.value(USER_KEY)
    if isinstance(user, User):
        return user.id
    return NO_USER_ID


def with_deadline(ctx: RequestContext, seconds: float) -> RequestContext:
    """Attach a deadline ``seconds`` from now (monotonic clock)."""
    return ctx.with_value(_DEADLINE_KEY, time.monotonic() + seconds)


def deadline_from_context(ctx: RequestContext) -> float | None:
    deadline = ctx.value(_DEADLINE_KEY)
    if isinstance(deadline, bool) or not isinstance(deadline, (int, float)):
        return None
    return float(deadline)
