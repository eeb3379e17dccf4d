"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import Generator

import pytest
from sqlalchemy import Connection, Engine, create_engine
from sqlalchemy.pool import NullPool, StaticPool

from userstore.db.context import RequestContext, background
from userstore.db.inmemory import InMemoryUserRepository
from userstore.db.models import Base
from userstore.db.repositories import UserRepository
from userstore.db.sql_repositories import SqlUserRepository


@pytest.fixture
def sqlite_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with the users table created.

    StaticPool keeps a single connection so the in-memory database is
    shared by every connect.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def connection(sqlite_engine: Engine) -> Generator[Connection, None, None]:
    """Open connection handed to the SQL repository."""
    with sqlite_engine.connect() as conn:
        yield conn


@pytest.fixture
def sql_repo(connection: Connection) -> SqlUserRepository:
    return SqlUserRepository(connection)


@pytest.fixture(params=["sql", "inmemory"])
def repo(request: pytest.FixtureRequest) -> UserRepository:
    """Every repository backend, for behaviour shared across backends."""
    if request.param == "sql":
        return SqlUserRepository(request.getfixturevalue("connection"))
    return InMemoryUserRepository()


@pytest.fixture
def ctx() -> RequestContext:
    """Anonymous request context."""
    return background()


@pytest.fixture
def postgres_engine() -> Generator[Engine, None, None]:
    """Create engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+psycopg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+psycopg://", 1)

    engine = create_engine(database_url, poolclass=NullPool, echo=False)

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()
