"""
Graph API client.

Primitive calls of the Instagram content publishing protocol:

    POST /{account}/media          create a media container
    GET  /{container}?fields=status_code
    POST /{account}/media_publish  publish a finished container
    GET  /{id}?fields=...          permalink, like_count, comments_count

plus the OAuth exchanges used by the token lifecycle. The client holds no
token: every call receives the bearer token explicitly.

https://developers.facebook.com/docs/instagram-platform/content-publishing
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx
import structlog

from core.exceptions import (
    FieldFetchError,
    GraphAPIError,
    MediaCreationError,
    PublishError,
)

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class ContainerState(str, Enum):
    """Outcome of polling a media container."""

    FINISHED = "FINISHED"
    ERROR = "ERROR"
    TIMEOUT = "TIMEOUT"


@dataclass
class ContainerStatus:
    """Result of ``poll_container_status``."""

    status: ContainerState
    last_response: Optional[dict[str, Any]] = None
    attempts: int = 0

    @property
    def is_finished(self) -> bool:
        return self.status == ContainerState.FINISHED


def _json_or_none(response: httpx.Response) -> Optional[dict[str, Any]]:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


class GraphAPIClient:
    """
    Thin async client for the versioned Graph API.

    Args:
        http_client: Shared httpx client (owned by the caller).
        graph_version: API version segment, e.g. ``v21.0``.
        base_url: Graph host.
        sleep: Awaitable sleep used between status polls (injectable for tests).
    """

    INSTAGRAM_GRAPH_URL = "https://graph.instagram.com"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        graph_version: str = "v21.0",
        base_url: str = "https://graph.facebook.com",
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.http_client = http_client
        version = graph_version if graph_version.startswith("v") else f"v{graph_version}"
        self.base_url = f"{base_url.rstrip('/')}/{version}"
        self._sleep = sleep

    # -------------------------------------------------------------------------
    # Content publishing primitives
    # -------------------------------------------------------------------------

    async def create_media_container(
        self,
        *,
        token: str,
        account_id: str,
        url: Optional[str] = None,
        caption: str = "",
        media_type: Optional[str] = None,
        is_carousel_item: bool = False,
        children_ids: Optional[list[str]] = None,
        is_video: bool = False,
    ) -> str:
        """
        Create a media container and return its id.

        ``url`` is sent as ``video_url`` when ``is_video`` is set, otherwise
        as ``image_url``. Carousel parents pass ``children_ids`` and no url.

        Raises:
            MediaCreationError: Non-2xx response or no id in the body.
        """
        payload: dict[str, Any] = {"access_token": token, "caption": caption or ""}
        if media_type:
            payload["media_type"] = media_type
        if is_carousel_item:
            payload["is_carousel_item"] = True
        if children_ids:
            payload["children"] = list(children_ids)
        if url:
            payload["video_url" if is_video else "image_url"] = url

        step = {"step": "create_media_container", "media_type": media_type or "IMAGE"}
        try:
            response = await self.http_client.post(f"{self.base_url}/{account_id}/media", json=payload)
        except httpx.HTTPError as e:
            raise MediaCreationError(f"Media creation request failed: {e}", context=step) from e

        if not response.is_success:
            raise MediaCreationError(
                f"Media creation error: {response.text}",
                status_code=response.status_code,
                response_body=response.text,
                context=step,
            )

        data = _json_or_none(response) or {}
        container_id = data.get("id")
        if not container_id:
            raise MediaCreationError(
                "Invalid Instagram response: missing media creation id",
                status_code=response.status_code,
                response_body=response.text,
                context=step,
            )

        logger.info("media_container_created", container_id=container_id, **step)
        return str(container_id)

    async def poll_container_status(
        self,
        *,
        token: str,
        container_id: str,
        interval_ms: int = 1000,
        max_attempts: int = 30,
    ) -> ContainerStatus:
        """
        Poll a container until it reaches FINISHED or ERROR.

        Waits one interval before every poll. Transport errors and non-2xx
        responses are treated as transient and retried. Running out of
        attempts returns TIMEOUT; the caller decides whether that is fatal.
        """
        last: Optional[dict[str, Any]] = None
        url = f"{self.base_url}/{container_id}"
        params = {"fields": "status_code", "access_token": token}

        for attempt in range(1, max_attempts + 1):
            await self._sleep(interval_ms / 1000)

            try:
                response = await self.http_client.get(url, params=params)
            except httpx.HTTPError as e:
                logger.warning(
                    "container_status_poll_failed",
                    container_id=container_id,
                    attempt=attempt,
                    error=str(e),
                )
                continue

            last = _json_or_none(response)
            if not response.is_success:
                logger.warning(
                    "container_status_poll_rejected",
                    container_id=container_id,
                    attempt=attempt,
                    status_code=response.status_code,
                )
                continue

            code = (last or {}).get("status_code")
            if code == ContainerState.FINISHED.value:
                return ContainerStatus(ContainerState.FINISHED, last, attempt)
            if code == ContainerState.ERROR.value:
                logger.error("container_processing_error", container_id=container_id, response=last)
                return ContainerStatus(ContainerState.ERROR, last, attempt)

        logger.warning("container_status_timeout", container_id=container_id, attempts=max_attempts)
        return ContainerStatus(ContainerState.TIMEOUT, last, max_attempts)

    async def publish_container(
        self,
        *,
        token: str,
        account_id: str,
        container_id: str,
        sticker_asset_id: Optional[str] = None,
    ) -> str:
        """
        Publish a finished container and return the media id.

        Raises:
            PublishError: Non-2xx response or no id in the body.
        """
        payload: dict[str, Any] = {"creation_id": container_id, "access_token": token}
        if sticker_asset_id:
            payload["sticker_asset_id"] = sticker_asset_id

        step = {"step": "publish_container", "container_id": container_id}
        try:
            response = await self.http_client.post(
                f"{self.base_url}/{account_id}/media_publish", json=payload
            )
        except httpx.HTTPError as e:
            raise PublishError(f"Publish request failed: {e}", context=step) from e

        if not response.is_success:
            raise PublishError(
                f"Publish error: {response.text}",
                status_code=response.status_code,
                response_body=response.text,
                context=step,
            )

        data = _json_or_none(response) or {}
        media_id = data.get("id")
        if not media_id:
            raise PublishError(
                "Invalid Instagram response: missing published media id",
                status_code=response.status_code,
                response_body=response.text,
                context=step,
            )

        logger.info("media_published", media_id=media_id, container_id=container_id)
        return str(media_id)

    async def fetch_fields(self, *, token: str, media_id: str, fields: str) -> dict[str, Any]:
        """
        Fetch arbitrary fields of a graph object.

        Raises:
            FieldFetchError: Non-2xx response; the message includes the raw body.
        """
        step = {"step": "fetch_fields", "media_id": media_id, "fields": fields}
        try:
            response = await self.http_client.get(
                f"{self.base_url}/{media_id}",
                params={"fields": fields, "access_token": token},
            )
        except httpx.HTTPError as e:
            raise FieldFetchError(f"Unable to obtain fields ({fields}): {e}", context=step) from e

        if not response.is_success:
            raise FieldFetchError(
                f"Unable to obtain fields ({fields}): {response.text}",
                status_code=response.status_code,
                response_body=response.text,
                context=step,
            )
        return _json_or_none(response) or {}

    # -------------------------------------------------------------------------
    # OAuth exchanges
    # -------------------------------------------------------------------------

    async def exchange_token(self, *, app_id: str, app_secret: str, token: str) -> dict[str, Any]:
        """
        Exchange a token for a (new) long-lived token via ``fb_exchange_token``.

        Raises:
            GraphAPIError: Non-2xx response or no access_token in the body.
        """
        params = {
            "grant_type": "fb_exchange_token",
            "client_id": app_id,
            "client_secret": app_secret,
            "fb_exchange_token": token,
        }
        return await self._exchange(f"{self.base_url}/oauth/access_token", params, "fb_exchange_token")

    async def exchange_instagram_token(self, *, app_secret: str, token: str) -> dict[str, Any]:
        """Exchange a short-lived Instagram token via ``ig_exchange_token``."""
        params = {
            "grant_type": "ig_exchange_token",
            "client_secret": app_secret,
            "access_token": token,
        }
        return await self._exchange(
            f"{self.INSTAGRAM_GRAPH_URL}/access_token", params, "ig_exchange_token"
        )

    async def _exchange(self, url: str, params: dict[str, str], grant: str) -> dict[str, Any]:
        step = {"step": "token_exchange", "grant_type": grant}
        try:
            response = await self.http_client.get(url, params=params)
        except httpx.HTTPError as e:
            raise GraphAPIError(f"Token exchange request failed: {e}", context=step) from e

        if not response.is_success:
            raise GraphAPIError(
                f"Token exchange failed: {response.text}",
                status_code=response.status_code,
                response_body=response.text,
                context=step,
            )

        data = _json_or_none(response) or {}
        if not data.get("access_token"):
            raise GraphAPIError(
                "Token exchange response has no access_token",
                status_code=response.status_code,
                context=step,
            )
        return data
