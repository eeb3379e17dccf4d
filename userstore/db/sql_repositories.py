"""SQL implementation of the user repository.

Each public method runs as one transaction on the shared connection:
lock, begin, delegate to a module-level operation, commit. Operations take
the connection as an argument and never begin or commit themselves, so a
find, an authorization check and a write share one transaction.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError, StatementError

from userstore.db.context import RequestContext
from userstore.db.queries import (
    DELETE_USER_SQL,
    INSERT_USER_SQL,
    TOTAL_COUNT_COLUMN,
    UPDATE_USER_SQL,
    build_count_users_query,
    build_find_users_query,
    insert_user_params,
    to_select,
    to_statement,
    update_user_params,
    user_from_row,
)
from userstore.db.repositories import (
    apply_user_update,
    authorize_owner,
    check_deadline,
    observe_operation,
)
from userstore.errors import ConflictError, InternalError, NotFoundError
from userstore.models.user import User, UserFilter, UserUpdate, validate_user


class SqlUserRepository:
    """SQL implementation of UserRepository over one open connection.

    Calls are serialized by a lock held from begin to commit/rollback, so
    the repository can be shared between threads.
    """

    backend = "sql"

    def __init__(self, connection: Connection, *, require_password: bool = False) -> None:
        self._connection = connection
        self._require_password = require_password
        self._lock = threading.Lock()

    def close(self) -> None:
        """Close the underlying connection once in-flight calls finish."""
        with self._lock:
            self._connection.close()

    @contextmanager
    def _transaction(self, ctx: RequestContext) -> Iterator[Connection]:
        with self._lock:
            check_deadline(ctx)
            try:
                with self._connection.begin():
                    yield self._connection
                    check_deadline(ctx)
            except SQLAlchemyError as exc:
                # Statement errors render bound parameters; report the driver message only.
                detail = exc.orig if isinstance(exc, StatementError) and exc.orig else exc
                raise InternalError(f"database error: {detail}") from exc

    def create_user(self, ctx: RequestContext, user: User) -> None:
        """Create a new user and assign its id."""
        with observe_operation(self.backend, "create_user", ctx):
            with self._transaction(ctx) as conn:
                user_id = _create_user(conn, user, require_password=self._require_password)
            user.id = user_id

    def delete_user(self, ctx: RequestContext, user_id: int) -> None:
        """Delete a user owned by the acting identity."""
        with observe_operation(self.backend, "delete_user", ctx):
            with self._transaction(ctx) as conn:
                _delete_user(ctx, conn, user_id)

    def update_user(self, ctx: RequestContext, user_id: int, patch: UserUpdate) -> User:
        """Apply a sparse patch to a user owned by the acting identity."""
        with observe_operation(self.backend, "update_user", ctx):
            with self._transaction(ctx) as conn:
                return _update_user(
                    ctx, conn, user_id, patch, require_password=self._require_password
                )

    def find_user_by_id(self, ctx: RequestContext, user_id: int) -> User:
        """Get user by id."""
        with observe_operation(self.backend, "find_user_by_id", ctx):
            with self._transaction(ctx) as conn:
                return _find_user_by_id(conn, user_id)

    def find_user_by_email(self, ctx: RequestContext, email: str) -> User:
        """Get user by email."""
        with observe_operation(self.backend, "find_user_by_email", ctx):
            with self._transaction(ctx) as conn:
                return _find_user_by_email(conn, email)

    def find_users(self, ctx: RequestContext, filters: UserFilter) -> tuple[list[User], int]:
        """Search users."""
        with observe_operation(self.backend, "find_users", ctx):
            with self._transaction(ctx) as conn:
                return _find_users(conn, filters)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# SQLSTATE for unique_violation on PostgreSQL.
_UNIQUE_VIOLATION = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    """Tell a duplicate key apart from other constraint failures."""
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == _UNIQUE_VIOLATION:
        return True
    if getattr(orig, "pgcode", None) == _UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(orig)


def _create_user(conn: Connection, user: User, *, require_password: bool) -> int:
    """Insert a user and return the generated id."""
    now = _now()
    user.created_at = now
    user.updated_at = now

    validate_user(user, require_password=require_password)

    stmt, binds = to_statement(INSERT_USER_SQL, insert_user_params(user))
    try:
        return conn.execute(stmt, binds).scalar_one()
    except IntegrityError as exc:
        if not _is_unique_violation(exc):
            raise
        raise ConflictError(f"email {user.email!r} is already in use") from exc


def _delete_user(ctx: RequestContext, conn: Connection, user_id: int) -> None:
    user = _find_user_by_id(conn, user_id)
    authorize_owner(ctx, user)

    stmt, binds = to_statement(DELETE_USER_SQL, [user.id])
    conn.execute(stmt, binds)


def _update_user(
    ctx: RequestContext,
    conn: Connection,
    user_id: int,
    patch: UserUpdate,
    *,
    require_password: bool,
) -> User:
    user = _find_user_by_id(conn, user_id)
    authorize_owner(ctx, user)

    merged = apply_user_update(user, patch, _now())
    validate_user(merged, require_id=True, require_password=require_password)

    stmt, binds = to_statement(UPDATE_USER_SQL, update_user_params(merged))
    try:
        conn.execute(stmt, binds)
    except IntegrityError as exc:
        if not _is_unique_violation(exc):
            raise
        raise ConflictError(f"email {merged.email!r} is already in use") from exc

    return merged


def _find_user_by_id(conn: Connection, user_id: int) -> User:
    users, _ = _find_users(conn, UserFilter(id=user_id))
    if not users:
        raise NotFoundError(f"user {user_id} not found")
    return users[0]


def _find_user_by_email(conn: Connection, email: str) -> User:
    users, _ = _find_users(conn, UserFilter(email=email))
    if not users:
        raise NotFoundError(f"user with email {email!r} not found")
    return users[0]


def _find_users(conn: Connection, filters: UserFilter) -> tuple[list[User], int]:
    query = build_find_users_query(filters, dialect=conn.dialect.name)
    stmt, binds = to_select(query)
    rows = conn.execute(stmt, binds).mappings().all()

    if rows:
        return [user_from_row(row) for row in rows], rows[0][TOTAL_COUNT_COLUMN]

    # The window count rides on returned rows; a page past the end has none.
    if filters.offset <= 0:
        return [], 0
    count = build_count_users_query(filters)
    stmt, binds = to_statement(count.sql, count.params)
    return [], conn.execute(stmt, binds).scalar_one()
