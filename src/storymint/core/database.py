"""Database engine and session factory setup."""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Seconds a SQLite writer waits for the database lock before failing
SQLITE_BUSY_TIMEOUT = 30


def setup_db_session(
    db_url: str, pool_size: int = 20, echo: bool = False
) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    PostgreSQL (postgresql+psycopg://...) is the production backend; SQLite
    (sqlite+aiosqlite:///...) is accepted for local runs and tests.

    Args:
        db_url: SQLAlchemy async connection URL
        pool_size: Maximum number of connections in the pool (default: 20)
        echo: Log emitted SQL

    Returns:
        Async session factory; its engine is available as factory.kw["bind"]
    """
    engine_options: dict = {
        "pool_size": pool_size,
        "max_overflow": 0,
        "pool_pre_ping": True,
        "echo": echo,
    }
    if make_url(db_url).get_backend_name() == "sqlite":
        engine_options["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}

    engine = create_async_engine(db_url, **engine_options)

    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Entities stay readable after the UoW commits
    )
