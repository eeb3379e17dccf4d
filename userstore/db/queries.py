"""SQL statements and the parameterized query builder for the users table.

Column names only ever come from the fixed lists below; filter values always
travel as bind parameters. Bind names are positional: ``:p1``, ``:p2``, ...
in the same order as the parameter list.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, DateTime, Text, bindparam, text
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.sql.selectable import TextualSelect

from userstore.models.user import User, UserFilter

USERS_TABLE = "users"

# Row layout shared by the select statement and user_from_row.
USER_COLUMNS = ("id", "name", "email", "password", "created_at", "updated_at")
TOTAL_COUNT_COLUMN = "total_count"

# Filterable fields, in the order predicates are appended.
FILTER_FIELDS = ("id", "name", "email")

_COLUMN_TYPES = {
    "id": BigInteger(),
    "name": Text(),
    "email": Text(),
    "password": Text(),
    "created_at": DateTime(timezone=True),
    "updated_at": DateTime(timezone=True),
    TOTAL_COUNT_COLUMN: BigInteger(),
}

INSERT_USER_SQL = (
    f"INSERT INTO {USERS_TABLE} (name, email, password, created_at, updated_at) "
    "VALUES (:p1, :p2, :p3, :p4, :p5) RETURNING id"
)

UPDATE_USER_SQL = (
    f"UPDATE {USERS_TABLE} SET name = :p1, email = :p2, password = :p3, "
    "updated_at = :p4 WHERE id = :p5"
)

DELETE_USER_SQL = f"DELETE FROM {USERS_TABLE} WHERE id = :p1"


@dataclass(frozen=True)
class UserQuery:
    """A rendered statement and its positional parameters."""

    sql: str
    params: list[Any]


def placeholder(index: int) -> str:
    """Return the bind name for a 1-based parameter position."""
    if index < 1:
        raise ValueError(f"parameter positions are 1-based, got {index}")
    return f":p{index}"


def where_condition_eq(field: str, index: int) -> str:
    """Return an equality predicate on an allow-listed field.

    Example:
        >>> where_condition_eq("id", 1)
        'id = :p1'
    """
    if field not in FILTER_FIELDS:
        raise ValueError(f"field {field!r} is not filterable")
    return f"{field} = {placeholder(index)}"


def format_limit_offset(limit: int, offset: int) -> str:
    """Return a LIMIT/OFFSET clause; non-positive values are omitted.

    Example:
        >>> format_limit_offset(10, 0)
        'LIMIT 10'
        >>> format_limit_offset(0, 0)
        ''
    """
    if limit > 0 and offset > 0:
        return f"LIMIT {int(limit)} OFFSET {int(offset)}"
    if limit > 0:
        return f"LIMIT {int(limit)}"
    if offset > 0:
        return f"OFFSET {int(offset)}"
    return ""


def build_user_filter(filters: UserFilter) -> tuple[str, list[Any]]:
    """Build the WHERE clause body and its parameter list.

    Args:
        filters: Optional equality filters

    Returns:
        Tuple of (predicate text joined by AND, index-aligned parameters)
    """
    predicates = ["1 = 1"]
    params: list[Any] = []

    for field in FILTER_FIELDS:
        value = getattr(filters, field)
        if value is None:
            continue
        params.append(value)
        predicates.append(where_condition_eq(field, len(params)))

    return " AND ".join(predicates), params


def build_find_users_query(
    filters: UserFilter, dialect: str = "postgresql"
) -> UserQuery:
    """Build the paginated search statement.

    The total_count column counts every row matching the filter, ignoring
    pagination, so a single round trip yields the page and the total.

    SQLite rejects OFFSET without LIMIT, so for that dialect an offset-only
    page is rendered as ``LIMIT -1 OFFSET n``.
    """
    where, params = build_user_filter(filters)
    pagination = format_limit_offset(filters.limit, filters.offset)
    if dialect == "sqlite" and filters.limit <= 0 and filters.offset > 0:
        pagination = f"LIMIT -1 {pagination}"

    columns = ", ".join(USER_COLUMNS)
    sql = (
        f"SELECT {columns}, COUNT(*) OVER () AS {TOTAL_COUNT_COLUMN} "
        f"FROM {USERS_TABLE} "
        f"WHERE {where} "
        "ORDER BY id ASC"
    )
    if pagination:
        sql = f"{sql} {pagination}"

    return UserQuery(sql=sql, params=params)


def build_count_users_query(filters: UserFilter) -> UserQuery:
    """Build a bare count over the filter, for pages past the last match."""
    where, params = build_user_filter(filters)
    sql = f"SELECT COUNT(*) AS {TOTAL_COUNT_COLUMN} FROM {USERS_TABLE} WHERE {where}"
    return UserQuery(sql=sql, params=params)


def insert_user_params(user: User) -> list[Any]:
    return [user.name, user.email, user.password, user.created_at, user.updated_at]


def update_user_params(user: User) -> list[Any]:
    return [user.name, user.email, user.password, user.updated_at, user.id]


def bind_params(params: Sequence[Any]) -> dict[str, Any]:
    """Map a positional parameter list onto its bind names."""
    return {f"p{index}": value for index, value in enumerate(params, start=1)}


def to_statement(sql: str, params: Sequence[Any]) -> tuple[TextClause, dict[str, Any]]:
    """Wrap SQL text for execution, typing datetime binds.

    Returns:
        Tuple of (executable clause, bind parameter mapping)
    """
    stmt = text(sql)
    typed = [
        bindparam(f"p{index}", type_=DateTime(timezone=True))
        for index, value in enumerate(params, start=1)
        if isinstance(value, datetime)
    ]
    if typed:
        stmt = stmt.bindparams(*typed)
    return stmt, bind_params(params)


def to_select(query: UserQuery) -> tuple[TextualSelect, dict[str, Any]]:
    """Wrap a search statement with typed result columns."""
    stmt, binds = to_statement(query.sql, query.params)
    return stmt.columns(**_COLUMN_TYPES), binds


def user_from_row(row: Mapping[str, Any]) -> User:
    """Map a result row back into a User.

    Timestamps are written in UTC; drivers that store them without an offset
    (SQLite) hand them back naive, so they are re-tagged as UTC.
    """
    fields = {column: row[column] for column in USER_COLUMNS}
    for column in ("created_at", "updated_at"):
        value = fields[column]
        if isinstance(value, datetime) and value.tzinfo is None:
            fields[column] = value.replace(tzinfo=timezone.utc)
    return User(**fields)
