"""
Database initialization and connection management.

This module provides functions for:
1. Creating the async engine and session factory
2. Creating the schema on a fresh database
3. Disposing of the engine on shutdown
"""

from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker

from assessment_engine.common.logger import app_logger
from assessment_engine.database.base import Base
from assessment_engine.database import models  # noqa: F401  (registers tables)

logger = app_logger.getChild("database.init_db")

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Get the global async engine instance."""
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get the factory producing ``AsyncSession`` objects bound to the engine."""
    if _session_factory is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _session_factory


def _configure_sqlite(engine: AsyncEngine) -> None:
    # The sqlite driver defers BEGIN until the first write, which breaks
    # SAVEPOINT handling; emit BEGIN ourselves and enforce foreign keys.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


async def initialize_database(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
) -> AsyncEngine:
    """
    Initialize the async database engine.

    Pool settings are ignored for SQLite, which does not use a queue pool.

    Args:
        database_url: Database connection URL
        echo: Whether to echo SQL statements
        pool_size: Connection pool size
        max_overflow: Maximum number of connections to allow above pool_size
        pool_timeout: Timeout for getting a connection from the pool

    Returns:
        AsyncEngine instance
    """
    global _engine, _session_factory

    url = make_url(database_url)
    is_sqlite = url.get_backend_name() == "sqlite"

    try:
        logger.info(f"Initializing database with backend {url.get_backend_name()} "
                    f"(pool size: {'n/a' if is_sqlite else pool_size})")

        engine_kwargs = {"echo": echo}
        if not is_sqlite:
            engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow,
                                 pool_timeout=pool_timeout)

        _engine = create_async_engine(database_url, **engine_kwargs)
        if is_sqlite:
            _configure_sqlite(_engine)

        _session_factory = sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("Database engine initialized successfully")
        return _engine

    except Exception as e:
        logger.error(f"Failed to initialize async database: {str(e)}")
        raise


async def create_schema() -> None:
    """Create every table that does not exist yet."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema created")


async def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine, _session_factory

    if _engine:
        try:
            await _engine.dispose()
            logger.info("Database engine closed successfully")
        except Exception as e:
            logger.error(f"Error closing database engine: {str(e)}")
            raise
        finally:
            _engine = None
            _session_factory = None
