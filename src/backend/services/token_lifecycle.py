"""
Token Lifecycle Manager

Keeps the Instagram long-lived token fresh. The check runs before the
first graph call of every publish: a token that expires halfway through
the container/poll/publish sequence leaves a dangling container behind.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog

from core.exceptions import ConfigurationError, GraphAPIError, RefreshFailedError
from integrations.graph_api import GraphAPIClient
from models.credential import TokenType
from services.credential_store import Credential, CredentialStore

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenLifecycleManager:
    """
    Refresh policy for long-lived tokens.

    Args:
        store: Credential store used to read and persist tokens.
        graph: Graph API client performing the OAuth exchanges.
        app_id / app_secret: Meta app credentials.
        threshold_days: Token age that triggers a refresh.
        clock: Returns the current UTC time (injectable for tests).
    """

    def __init__(
        self,
        store: CredentialStore,
        graph: GraphAPIClient,
        app_id: Optional[str],
        app_secret: Optional[str],
        threshold_days: int = 55,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.graph = graph
        self.app_id = app_id
        self.app_secret = app_secret
        self.threshold = timedelta(days=threshold_days)
        self.clock = clock

    def needs_refresh(self, credential: Credential) -> bool:
        return self.clock() - credential.created_at >= self.threshold

    def _require_app_credentials(self) -> tuple[str, str]:
        if not self.app_id or not self.app_secret:
            raise ConfigurationError("INSTAGRAM_APP_ID or INSTAGRAM_APP_SECRET missing")
        return self.app_id, self.app_secret

    async def ensure_fresh_token(self, credential: Credential) -> Credential:
        """
        Return a credential that is safe to publish with.

        Under the threshold the input is returned unchanged. Otherwise the
        token is exchanged, persisted (which resets created_at) and the new
        credential is returned.

        Raises:
            RefreshFailedError: The exchange was rejected or unreachable.
        """
        if not self.needs_refresh(credential):
            return credential

        age_days = (self.clock() - credential.created_at).days
        logger.info(
            "token_refresh_started",
            token_type=credential.token_type.value,
            age_days=age_days,
        )

        app_id, app_secret = self._require_app_credentials()
        try:
            data = await self.graph.exchange_token(
                app_id=app_id, app_secret=app_secret, token=credential.token
            )
        except GraphAPIError as e:
            logger.error("token_refresh_failed", token_type=credential.token_type.value, error=e.message)
            raise RefreshFailedError(
                f"Token refresh failed: {e.message}",
                context={"step": "token_refresh", "status_code": e.status_code},
            ) from e

        refreshed = await self.store.set(credential.token_type, data["access_token"])
        logger.info(
            "token_refreshed",
            token_type=credential.token_type.value,
            expires_in=data.get("expires_in"),
        )
        return refreshed

    async def get_fresh_credential(self, token_type: TokenType = TokenType.INSTAGRAM) -> Credential:
        """Load a credential from the store and refresh it if needed."""
        credential = await self.store.get(token_type)
        return await self.ensure_fresh_token(credential)

    async def exchange_short_lived_token(self, short_token: str) -> dict[str, Any]:
        """
        Turn a short-lived user token into a stored long-lived token.

        Tries the Facebook ``fb_exchange_token`` grant first and falls back
        to the Instagram ``ig_exchange_token`` grant.

        Returns:
            ``{token_type, expires_in, created_at}``; the token itself is not returned.
        """
        app_id, app_secret = self._require_app_credentials()
        if not short_token:
            raise ConfigurationError("A short-lived token is required")

        try:
            data = await self.graph.exchange_token(
                app_id=app_id, app_secret=app_secret, token=short_token
            )
            grant = "fb_exchange_token"
        except GraphAPIError as fb_error:
            logger.warning("fb_token_exchange_failed", error=fb_error.message)
            try:
                data = await self.graph.exchange_instagram_token(
                    app_secret=app_secret, token=short_token
                )
            except GraphAPIError as e:
                raise RefreshFailedError(
                    f"Exchange failed: {e.message}",
                    context={"step": "token_exchange"},
                ) from e
            grant = "ig_exchange_token"

        stored = await self.store.set(TokenType.INSTAGRAM, data["access_token"])
        logger.info("long_lived_token_stored", grant_type=grant)
        return {
            "token_type": stored.token_type.value,
            "expires_in": data.get("expires_in"),
            "created_at": stored.created_at,
        }
