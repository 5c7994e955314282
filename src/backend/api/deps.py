"""
Shared dependencies for API endpoints.

Includes:
- Cron secret check for scheduler-triggered endpoints
- Telegram webhook secret check
- Per-request page configuration, HTTP client and service wiring
"""

import secrets
from typing import Annotated, AsyncGenerator, Optional

import httpx
import structlog
from fastapi import Depends, Header, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import PageConfig, settings
from db.session import get_db
from services.daily_post import DailyPostPipeline
from services.service_factory import (
    build_daily_post_pipeline,
    build_token_manager,
    build_voting_orchestrator,
    create_http_client,
)
from services.token_lifecycle import TokenLifecycleManager
from services.voting_orchestrator import VotingOrchestrator

logger = structlog.get_logger(__name__)

# Security schemes
cron_security = HTTPBearer(auto_error=False)


# =============================================================================
# Access checks
# =============================================================================


async def verify_cron_secret(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(cron_security)],
) -> None:
    """
    Require ``Authorization: Bearer <CRON_SECRET>``.

    Without a configured secret the check is skipped outside production
    and the endpoint is unavailable in production.

    Raises:
        HTTPException: 401 on a missing or wrong secret, 503 when unconfigured in production.
    """
    expected = settings.CRON_SECRET
    if not expected:
        if settings.is_production:
            logger.error("cron_secret_not_configured")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="CRON_SECRET not configured",
            )
        return

    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        logger.warning("cron_secret_rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def verify_telegram_secret(
    x_telegram_bot_api_secret_token: Annotated[Optional[str], Header()] = None,
) -> None:
    """Check the secret Telegram sends with every webhook call, when one is configured."""
    expected = settings.TELEGRAM_WEBHOOK_SECRET
    if not expected:
        return
    if not x_telegram_bot_api_secret_token or not secrets.compare_digest(
        x_telegram_bot_api_secret_token, expected
    ):
        logger.warning("telegram_webhook_secret_rejected")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid webhook secret",
        )


# =============================================================================
# Per-request context
# =============================================================================


async def get_page_config(
    page: Annotated[Optional[str], Query(description="Page configuration to use")] = None,
) -> PageConfig:
    """Resolve the page configuration once for this request."""
    return settings.page(page)


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """One shared HTTP client for every external call of the request."""
    async with create_http_client() as client:
        yield client


# =============================================================================
# Services
# =============================================================================


async def get_voting_orchestrator(
    db: AsyncSession = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    page: PageConfig = Depends(get_page_config),
) -> VotingOrchestrator:
    return build_voting_orchestrator(db, http_client, page)


async def get_daily_post_pipeline(
    db: AsyncSession = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    page: PageConfig = Depends(get_page_config),
) -> DailyPostPipeline:
    return build_daily_post_pipeline(db, http_client, page)


async def get_token_manager(
    db: AsyncSession = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> TokenLifecycleManager:
    return build_token_manager(db, http_client)
