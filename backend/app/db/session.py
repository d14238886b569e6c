"""
Database session management.
Handles SQLite connection and session lifecycle with async support.
"""
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import event, Engine, create_engine, inspect
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from backend.app.config import get_settings
from backend.app.logging_config import get_logger

# Register every table on SQLModel.metadata
import backend.app.db.models  # noqa: F401

logger = get_logger(__name__)

settings = get_settings()


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Enable foreign key constraints for SQLite.
    This is required for proper referential integrity.

    Note: This event listener applies to ALL sync engines (including the one backing async).
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _ensure_sqlite_directory(db_url: str) -> None:
    if db_url.startswith("sqlite:///"):
        db_path = db_url.replace("sqlite:///", "", 1)
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def get_sync_engine() -> Engine:
    """
    Create and configure a SYNC database engine for non-async operations.

    Used by:
    - Schema creation at start-up
    - Test database setup

    Returns:
        Engine: SQLAlchemy sync engine
    """
    db_url = settings.DATABASE_URL
    _ensure_sqlite_directory(db_url)

    return create_engine(
        db_url,
        echo=False,
        poolclass=NullPool,
        )


def get_async_engine() -> AsyncEngine:
    """
    Create and configure the async database engine.

    Returns:
        AsyncEngine: SQLAlchemy async engine configured for SQLite with aiosqlite
    """
    db_url = settings.DATABASE_URL
    _ensure_sqlite_directory(db_url)

    # Convert sqlite:/// to sqlite+aiosqlite:/// for async
    async_db_url = db_url.replace("sqlite:///", "sqlite+aiosqlite:///")

    return create_async_engine(
        async_db_url,
        echo=False,
        # NullPool for SQLite - each connection is independent
        poolclass=NullPool,
        )


# Create engine instances
sync_engine = get_sync_engine()  # For schema creation, scripts
async_engine = get_async_engine()  # For FastAPI app and settlement tasks


def create_schema(engine: Engine | None = None) -> int:
    """
    Create missing tables from the model metadata.

    Returns:
        int: Number of tables present after creation
    """
    engine = engine or sync_engine
    SQLModel.metadata.create_all(engine)
    table_count = len(inspect(engine).get_table_names())
    logger.info("Database schema ready", tables=table_count)
    return table_count


async def get_session_generator() -> AsyncGenerator[AsyncSession, None]:
    """
    Get an async database session for dependency injection.

    Usage in FastAPI:
        @app.get("/")
        async def endpoint(session: AsyncSession = Depends(get_session_generator)):
            result = await session.execute(select(Model))
            ...

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        yield session
