"""
ArtVote Backend Application

Daily AI-art Instagram pipeline with Telegram voting rounds.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.v1 import router as api_v1_router
from core.config import settings
from core.error_reporting import report_error
from core.events import create_start_app_handler, create_stop_app_handler
from core.exceptions import ArtVoteError, DuplicateVoteError, NoImagesError
from core.middleware import RequestContextMiddleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await create_start_app_handler(app)()
    yield
    # Shutdown
    await create_stop_app_handler(app)()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Daily AI-art Instagram pipeline with Telegram voting rounds",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    application.add_middleware(RequestContextMiddleware)

    # Include routers
    application.include_router(api_v1_router, prefix="/api/v1")

    @application.exception_handler(ArtVoteError)
    async def artvote_exception_handler(request: Request, exc: ArtVoteError) -> JSONResponse:
        """Known application errors: report to the operator and answer with the message."""
        status_code = 404 if isinstance(exc, NoImagesError) else 500
        logger.error(
            "request_failed",
            error=exc.message,
            error_type=type(exc).__name__,
            path=request.url.path,
            **exc.context,
        )
        if not isinstance(exc, (NoImagesError, DuplicateVoteError)):
            await report_error(
                exc,
                {"operation": request.url.path, **exc.context},
                page_name=request.query_params.get("page"),
            )
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "error": exc.message},
        )

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch unhandled exceptions, report them and return a structured 500."""
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        await report_error(
            exc,
            {"operation": request.url.path},
            page_name=request.query_params.get("page"),
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": str(exc) if settings.DEBUG else "Internal Server Error",
            },
        )

    return application


app = create_application()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for uptime monitoring."""
    return {"status": "healthy", "service": "artvote-api"}


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }
