"""
Instagram Publisher

Composite publish protocols built on the Graph API primitives:

- single media: container -> poll -> publish -> permalink
- carousel:     child containers (in order) -> parent container -> poll -> publish -> permalink
- story:        STORIES container -> poll -> publish (optionally linking another post)

The token is refreshed before the first graph call of every publish.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from core.exceptions import (
    ConfigurationError,
    ContainerNotReadyError,
    FieldFetchError,
)
from integrations.graph_api import GraphAPIClient
from services.token_lifecycle import TokenLifecycleManager

logger = structlog.get_logger(__name__)


@dataclass
class PublishedMedia:
    """Result of a completed publish."""

    container_id: str
    media_id: str
    permalink: Optional[str] = None


class InstagramPublisher:
    """Publish images, carousels and stories to one Instagram account."""

    def __init__(
        self,
        graph: GraphAPIClient,
        tokens: TokenLifecycleManager,
        account_id: Optional[str],
        poll_interval_ms: int = 1000,
        poll_max_attempts: int = 30,
    ):
        self.graph = graph
        self.tokens = tokens
        self.account_id = account_id
        self.poll_interval_ms = poll_interval_ms
        self.poll_max_attempts = poll_max_attempts
        self._token: Optional[str] = None

    async def ensure_ready(self) -> str:
        """
        Check configuration and return a fresh access token.

        Raises:
            ConfigurationError: No Instagram account configured.
            RefreshFailedError: The token could not be refreshed.
        """
        if not self.account_id:
            raise ConfigurationError("IG_USER_ID not configured")
        credential = await self.tokens.get_fresh_credential()
        self._token = credential.token
        return credential.token

    async def publish_image(self, image_url: str, caption: str = "") -> PublishedMedia:
        """Publish one image as a feed post."""
        token = await self.ensure_ready()
        container_id = await self.graph.create_media_container(
            token=token,
            account_id=self.account_id,
            url=image_url,
            caption=caption,
        )
        return await self._finish(token, container_id, kind="image")

    async def publish_carousel(self, image_urls: list[str], caption: str = "") -> PublishedMedia:
        """
        Publish several images as one carousel post.

        Children are created one after another; their order is the display order.
        """
        if len(image_urls) < 2:
            raise ValueError("A carousel needs at least two images")

        token = await self.ensure_ready()
        children: list[str] = []
        for url in image_urls:
            child_id = await self.graph.create_media_container(
                token=token,
                account_id=self.account_id,
                url=url,
                is_carousel_item=True,
            )
            children.append(child_id)

        container_id = await self.graph.create_media_container(
            token=token,
            account_id=self.account_id,
            caption=caption,
            media_type="CAROUSEL",
            children_ids=children,
        )
        return await self._finish(token, container_id, kind="carousel")

    async def publish_story(
        self,
        image_url: str,
        sticker_asset_id: Optional[str] = None,
    ) -> PublishedMedia:
        """Publish an image story, optionally linking ``sticker_asset_id``."""
        token = await self.ensure_ready()
        container_id = await self.graph.create_media_container(
            token=token,
            account_id=self.account_id,
            url=image_url,
            media_type="STORIES",
        )
        return await self._finish(
            token,
            container_id,
            kind="story",
            sticker_asset_id=sticker_asset_id,
            with_permalink=False,
        )

    async def fetch_metrics(self, media_id: str, token: Optional[str] = None) -> dict[str, int]:
        """
        Like and comment counts of a published post.

        Reuses the token of the last ``ensure_ready`` call when there is one.
        """
        if token is None:
            token = self._token or await self.ensure_ready()
        data = await self.graph.fetch_fields(
            token=token, media_id=media_id, fields="like_count,comments_count"
        )
        return {
            "like_count": int(data.get("like_count") or 0),
            "comments_count": int(data.get("comments_count") or 0),
        }

    async def _finish(
        self,
        token: str,
        container_id: str,
        *,
        kind: str,
        sticker_asset_id: Optional[str] = None,
        with_permalink: bool = True,
    ) -> PublishedMedia:
        status = await self.graph.poll_container_status(
            token=token,
            container_id=container_id,
            interval_ms=self.poll_interval_ms,
            max_attempts=self.poll_max_attempts,
        )
        if not status.is_finished:
            raise ContainerNotReadyError(
                f"Media container {container_id} not ready: {status.status.value}",
                response_body=str(status.last_response),
                context={
                    "step": "poll_container_status",
                    "container_id": container_id,
                    "status": status.status.value,
                    "attempts": status.attempts,
                },
            )

        media_id = await self.graph.publish_container(
            token=token,
            account_id=self.account_id,
            container_id=container_id,
            sticker_asset_id=sticker_asset_id,
        )

        permalink = None
        if with_permalink:
            permalink = await self._permalink(token, media_id)

        logger.info("instagram_publish_completed", kind=kind, media_id=media_id, permalink=permalink)
        return PublishedMedia(container_id=container_id, media_id=media_id, permalink=permalink)

    async def _permalink(self, token: str, media_id: str) -> Optional[str]:
        # The media is live at this point; a failed lookup must not fail the publish
        try:
            data: dict[str, Any] = await self.graph.fetch_fields(
                token=token, media_id=media_id, fields="permalink"
            )
        except FieldFetchError as e:
            logger.warning("permalink_fetch_failed", media_id=media_id, error=e.message)
            return None
        return data.get("permalink")
