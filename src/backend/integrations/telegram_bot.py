"""
Telegram Bot API client.

Covers the calls the voting round and the operator channel need:
media groups, inline keyboards, photos, caption edits, message deletion
and callback query answers.
"""

from typing import Any, Optional

import httpx
import structlog

from core.exceptions import TelegramAPIError

logger = structlog.get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramBotClient:
    """
    Async Telegram Bot API client over a shared httpx client.

    Every method raises TelegramAPIError when the API answers with a
    non-2xx status or ``ok: false``. The bot token is part of the request
    URL and is never logged.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        bot_token: str,
        parse_mode: Optional[str] = None,
        api_url: str = TELEGRAM_API_URL,
    ):
        self.http_client = http_client
        self._base = f"{api_url.rstrip('/')}/bot{bot_token}"
        self.parse_mode = parse_mode

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self.http_client.post(f"{self._base}/{method}", json=payload)
        except httpx.HTTPError as e:
            raise TelegramAPIError(
                f"Telegram {method} request failed: {type(e).__name__}",
                context={"step": method},
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success or not data.get("ok"):
            description = data.get("description", "") if isinstance(data, dict) else ""
            raise TelegramAPIError(
                f"Telegram {method} failed: {response.status_code} {description}".strip(),
                context={"step": method, "status_code": response.status_code},
            )

        return data.get("result")

    def _with_common(
        self,
        payload: dict[str, Any],
        thread_id: Optional[int] = None,
        parse_mode: Optional[str] = None,
    ) -> dict[str, Any]:
        if thread_id is not None:
            payload["message_thread_id"] = thread_id
        mode = parse_mode or self.parse_mode
        if mode and ("text" in payload or "caption" in payload):
            payload["parse_mode"] = mode
        return payload

    async def send_message(
        self,
        chat_id: str | int,
        text: str,
        *,
        thread_id: Optional[int] = None,
        reply_markup: Optional[dict[str, Any]] = None,
        parse_mode: Optional[str] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self._call("sendMessage", self._with_common(payload, thread_id, parse_mode))

    async def send_photo(
        self,
        chat_id: str | int,
        photo: str,
        *,
        caption: Optional[str] = None,
        thread_id: Optional[int] = None,
        parse_mode: Optional[str] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"chat_id": chat_id, "photo": photo}
        if caption:
            payload["caption"] = caption
        return await self._call("sendPhoto", self._with_common(payload, thread_id, parse_mode))

    async def send_media_group(
        self,
        chat_id: str | int,
        photos: list[tuple[str, Optional[str]]],
        *,
        thread_id: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Send 2 to 10 photos as one album.

        Args:
            photos: ``(url, caption)`` pairs, in display order.

        Returns:
            The sent messages, one per photo.
        """
        if not 2 <= len(photos) <= 10:
            raise ValueError("A media group holds between 2 and 10 photos")

        media = []
        for url, caption in photos:
            item: dict[str, Any] = {"type": "photo", "media": url}
            if caption:
                item["caption"] = caption
            media.append(item)

        payload = self._with_common({"chat_id": chat_id, "media": media}, thread_id)
        result = await self._call("sendMediaGroup", payload)
        return result or []

    async def edit_message_caption(
        self,
        chat_id: str | int,
        message_id: int,
        caption: str,
    ) -> Any:
        payload = {"chat_id": chat_id, "message_id": message_id, "caption": caption}
        return await self._call("editMessageCaption", self._with_common(payload))

    async def delete_message(self, chat_id: str | int, message_id: int) -> bool:
        result = await self._call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})
        return bool(result)

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: str,
        show_alert: bool = False,
    ) -> bool:
        payload = {
            "callback_query_id": callback_query_id,
            "text": text,
            "show_alert": show_alert,
        }
        result = await self._call("answerCallbackQuery", payload)
        return bool(result)


def inline_keyboard(buttons: list[tuple[str, str]], per_row: int = 1) -> dict[str, Any]:
    """Build an ``inline_keyboard`` reply markup from ``(text, callback_data)`` pairs."""
    rows = [
        [{"text": text, "callback_data": data} for text, data in buttons[i : i + per_row]]
        for i in range(0, len(buttons), per_row)
    ]
    return {"inline_keyboard": rows}
