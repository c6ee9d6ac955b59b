#!/usr/bin/env python3
"""
Database initialization script.

This script creates every table of the assessment engine on the database
named by ``DATABASE_URL``. Production deployments should prefer
``alembic upgrade head``; this is meant for local development.
"""

import sys
import asyncio

from assessment_engine.config import settings
from assessment_engine.common.logger import configure_logger, APP_LOGGER_NAME
from assessment_engine.database.init_db import initialize_database, create_schema, close_database

logger = configure_logger(name=APP_LOGGER_NAME, level=settings.LOG_LEVEL).getChild("scripts.init_db")


async def async_main():
    """Initialize the database."""
    try:
        await initialize_database(
            database_url=settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT
        )
        await create_schema()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        sys.exit(1)
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(async_main())
