"""
Main application entry point for the internal assessment engine.

This module builds the FastAPI application: engine routers, error handlers,
CORS, and the database lifecycle.

Usage:
    - Direct: python -m assessment_engine.main
    - ASGI server: uvicorn assessment_engine.main:app
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assessment_engine.config import Settings, settings as default_settings
from assessment_engine.api import register_exception_handlers
from assessment_engine.common.logger import app_logger, configure_logger, APP_LOGGER_NAME
from assessment_engine.database.init_db import initialize_database, create_schema, close_database
from assessment_engine.assessments.collaborators import (
    RosterProvider, InMemoryRoster, NotificationSender, LoggingNotificationSender
)
from assessment_engine.assessments.router import router as assessments_router

logger = app_logger.getChild("main")


def create_app(
    app_settings: Optional[Settings] = None,
    roster: Optional[RosterProvider] = None,
    notifier: Optional[NotificationSender] = None,
    create_tables: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_settings: Settings to run with; the environment-derived ones by default
        roster: Course roster; an empty in-memory roster by default
        notifier: Notification channel; log-only by default
        create_tables: Create missing tables on startup

    Returns:
        The configured application
    """
    app_settings = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await initialize_database(
                database_url=app_settings.DATABASE_URL,
                echo=app_settings.SQL_ECHO,
                pool_size=app_settings.DB_POOL_SIZE,
                max_overflow=app_settings.DB_MAX_OVERFLOW,
                pool_timeout=app_settings.DB_POOL_TIMEOUT
            )
            if create_tables:
                await create_schema()
            logger.info("Application startup complete")
        except Exception as e:
            logger.error(f"Failed to initialize application: {str(e)}")
            raise

        yield

        await close_database()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        description="Internal assessments: questions, grading assignments, submissions and results",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = app_settings
    app.state.roster = roster or InMemoryRoster()
    app.state.notifier = notifier or LoggingNotificationSender()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(assessments_router, prefix=app_settings.API_PREFIX, tags=["assessments"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": f"Welcome to {app_settings.PROJECT_NAME}"}

    logger.info(f"Application initialized with {len(app.routes)} routes")
    return app


configure_logger(
    name=APP_LOGGER_NAME,
    level=default_settings.LOG_LEVEL,
    use_json=default_settings.LOG_JSON,
    log_file=default_settings.LOG_FILE,
)

app = create_app()

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

    uvicorn.run(
        "assessment_engine.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level="info"
    )
