"""
Application lifecycle event handlers.

Manages startup and shutdown tasks: database tables, global error
reporting hooks and the optional background scheduler.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from core.error_reporting import install_global_error_handlers
from db.session import close_db, init_db

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("app_starting", app=settings.APP_NAME, env=settings.APP_ENV)

        install_global_error_handlers()

        await init_db()

        if settings.SCHEDULER_ENABLED:
            from services.background_scheduler import start_scheduler

            await start_scheduler()

        logger.info("app_started", scheduler=settings.SCHEDULER_ENABLED)

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("app_stopping")

        if settings.SCHEDULER_ENABLED:
            from services.background_scheduler import stop_scheduler

            await stop_scheduler()

        await close_db()
        logger.info("app_stopped")

    return stop_app
