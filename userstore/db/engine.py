"""Database engine creation and repository wiring."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from userstore.config import Settings
from userstore.db.sql_repositories import SqlUserRepository


def create_engine_from_settings(settings: Settings) -> Engine:
    """Create SQLAlchemy engine from settings.

    SQLite URLs share one connection across threads so an in-memory
    database survives between connects.

    Raises:
        ValueError: If DATABASE_URL is unset or empty.
    """
    database_url = settings.database_url

    if not database_url:
        raise ValueError(
            "DATABASE_URL must be set to a valid connection string. "
            "Please configure the database_url setting."
        )

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.sql_echo,
        )

    return create_engine(database_url, pool_pre_ping=True, echo=settings.sql_echo)


def create_user_repository(settings: Settings, engine: Engine | None = None) -> SqlUserRepository:
    """Open a connection and wire a SqlUserRepository to the deployment profile.

    The repository keeps the connection for its lifetime; close it via
    ``repository.close()``.
    """
    if engine is None:
        engine = create_engine_from_settings(settings)

    return SqlUserRepository(engine.connect(), require_password=settings.require_password)
