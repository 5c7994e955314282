"""
Service wiring.

Builds the service graph for one invocation from a database session, a
shared httpx client and a resolved PageConfig. Used by the API
dependencies and by the background scheduler.
"""

from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import PageConfig, settings
from core.exceptions import ConfigurationError
from integrations.cloudinary import CloudinaryClient
from integrations.gemini import GeminiClient
from integrations.graph_api import GraphAPIClient
from integrations.telegram_bot import TelegramBotClient
from integrations.whatsapp import WhatsAppClient
from repositories.prompt_repository import PromptRepository
from repositories.voting_repository import VotingRepository
from services.content_service import PromptRefiner
from services.credential_store import CredentialStore
from services.daily_post import DailyPostPipeline
from services.instagram_publisher import InstagramPublisher
from services.notification_service import OperatorNotifier, WhatsAppNotifier
from services.scoring_service import ScoreWeights, ScoringService
from services.token_lifecycle import TokenLifecycleManager
from services.voting_orchestrator import VotingOrchestrator


def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)


def build_graph_client(http_client: httpx.AsyncClient) -> GraphAPIClient:
    return GraphAPIClient(
        http_client,
        graph_version=settings.GRAPH_API_VERSION,
        base_url=settings.GRAPH_API_BASE_URL,
    )


def build_telegram(http_client: httpx.AsyncClient) -> Optional[TelegramBotClient]:
    if not settings.TELEGRAM_BOT_TOKEN:
        return None
    return TelegramBotClient(
        http_client, settings.TELEGRAM_BOT_TOKEN, parse_mode=settings.TELEGRAM_PARSE_MODE
    )


def build_cdn() -> Optional[CloudinaryClient]:
    if not (
        settings.CLOUDINARY_CLOUD_NAME
        and settings.CLOUDINARY_API_KEY
        and settings.CLOUDINARY_API_SECRET
    ):
        return None
    return CloudinaryClient(
        settings.CLOUDINARY_CLOUD_NAME,
        settings.CLOUDINARY_API_KEY,
        settings.CLOUDINARY_API_SECRET,
    )


def build_gemini() -> Optional[GeminiClient]:
    if not settings.GOOGLE_API_KEY:
        return None
    return GeminiClient(
        api_key=settings.GOOGLE_API_KEY,
        text_model=settings.GEMINI_MODEL,
        image_model=settings.IMAGEN_MODEL,
        aspect_ratio=settings.IMAGE_ASPECT_RATIO,
    )


def build_token_manager(db: AsyncSession, http_client: httpx.AsyncClient) -> TokenLifecycleManager:
    return TokenLifecycleManager(
        store=CredentialStore(db),
        graph=build_graph_client(http_client),
        app_id=settings.INSTAGRAM_APP_ID,
        app_secret=settings.INSTAGRAM_APP_SECRET,
        threshold_days=settings.TOKEN_REFRESH_THRESHOLD_DAYS,
    )


def build_publisher(
    db: AsyncSession,
    http_client: httpx.AsyncClient,
    page: PageConfig,
) -> InstagramPublisher:
    return InstagramPublisher(
        graph=build_graph_client(http_client),
        tokens=build_token_manager(db, http_client),
        account_id=page.ig_user_id,
        poll_interval_ms=settings.CONTAINER_POLL_INTERVAL_MS,
        poll_max_attempts=settings.CONTAINER_POLL_MAX_ATTEMPTS,
    )


def build_notifier(
    db: AsyncSession,
    http_client: httpx.AsyncClient,
    page: PageConfig,
) -> OperatorNotifier:
    whatsapp = None
    if settings.WHATSAPP_ENABLED and settings.WHATSAPP_PHONE_NUMBER_ID and settings.WHATSAPP_TO:
        whatsapp = WhatsAppNotifier(
            client=WhatsAppClient(
                http_client,
                settings.WHATSAPP_PHONE_NUMBER_ID,
                graph_version=settings.WHATSAPP_GRAPH_VERSION,
                base_url=settings.GRAPH_API_BASE_URL,
            ),
            store=CredentialStore(db),
            to=settings.WHATSAPP_TO,
            success_template=settings.WHATSAPP_SUCCESS_TEMPLATE,
            failure_template=settings.WHATSAPP_FAILURE_TEMPLATE,
            language=settings.WHATSAPP_TEMPLATE_LANGUAGE,
        )
    return OperatorNotifier(build_telegram(http_client), page, whatsapp=whatsapp)


def build_voting_orchestrator(
    db: AsyncSession,
    http_client: httpx.AsyncClient,
    page: PageConfig,
) -> VotingOrchestrator:
    repo = VotingRepository(db)
    publisher = build_publisher(db, http_client, page)
    gemini = build_gemini()
    scoring = ScoringService(
        publisher.fetch_metrics,
        ScoreWeights.from_settings(),
        repo,
        before_fetch=publisher.ensure_ready,
    )

    return VotingOrchestrator(
        repo=repo,
        page=page,
        telegram=build_telegram(http_client),
        publisher=publisher,
        scoring=scoring,
        notifier=build_notifier(db, http_client, page),
        refiner=PromptRefiner(gemini, page) if gemini else None,
        cdn=build_cdn(),
        media_group_size=settings.TELEGRAM_MEDIA_GROUP_SIZE,
        cdn_cleanup_enabled=settings.CLOUDINARY_ENABLE_DELETE,
    )


def build_daily_post_pipeline(
    db: AsyncSession,
    http_client: httpx.AsyncClient,
    page: PageConfig,
) -> DailyPostPipeline:
    gemini = build_gemini()
    if gemini is None:
        raise ConfigurationError("GOOGLE_API_KEY not configured")
    cdn = build_cdn()
    if cdn is None:
        raise ConfigurationError("CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY or CLOUDINARY_API_SECRET missing")

    return DailyPostPipeline(
        prompts=PromptRepository(db),
        voting=VotingRepository(db),
        refiner=PromptRefiner(gemini, page),
        images=gemini,
        cdn=cdn,
        publisher=build_publisher(db, http_client, page),
        notifier=build_notifier(db, http_client, page),
        page=page,
        use_prompt_queue=settings.USE_PROMPT_QUEUE_DB,
    )
