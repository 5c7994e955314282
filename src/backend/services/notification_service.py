"""
Operator Notification Service

Reports pipeline results, winners and errors to the operator channel
(a Telegram chat, optionally mirrored to WhatsApp).

Message templates use positional placeholders {0}..{3}:
- success: original prompt, refined prompt, caption, permalink
- failure: original prompt, refined prompt, error
- winner:  score, permalink

Notifications are best-effort: every public method returns a bool and
never raises.
"""

from collections.abc import Sequence
from typing import Any, Optional

import structlog

from core.config import PageConfig, settings
from integrations.telegram_bot import TelegramBotClient
from integrations.whatsapp import WhatsAppClient, build_template_message
from models.credential import TokenType
from services.credential_store import CredentialStore

logger = structlog.get_logger(__name__)

# Telegram caps captions at 1024 characters and messages at 4096
CAPTION_LIMIT = 1024
MESSAGE_LIMIT = 4096


def format_template(template: str, params: Sequence[Any]) -> str:
    """Replace {0}..{3} with the given values; missing values become empty."""
    text = template or ""
    for index in range(4):
        value = params[index] if index < len(params) and params[index] is not None else ""
        text = text.replace(f"{{{index}}}", str(value))
    return text


class WhatsAppNotifier:
    """Mirror operator notifications as WhatsApp template messages."""

    def __init__(
        self,
        client: WhatsAppClient,
        store: CredentialStore,
        to: str,
        success_template: str,
        failure_template: str,
        language: str = "it",
    ):
        self.client = client
        self.store = store
        self.to = to
        self.success_template = success_template
        self.failure_template = failure_template
        self.language = language

    async def send(self, success: bool, params: list[str], image_url: Optional[str] = None) -> None:
        credential = await self.store.get(TokenType.WHATSAPP)
        message = build_template_message(
            to=self.to,
            template_name=self.success_template if success else self.failure_template,
            body_params=params,
            language=self.language,
            header_image_url=image_url if success else None,
        )
        await self.client.send_template(credential.token, message)


class OperatorNotifier:
    """
    Service for operator notifications.

    Features:
    - Success notification as a photo with caption when an image is known
    - Failure and error reports in the error thread when one is configured
    - Winner announcement at the end of a voting round
    - Optional WhatsApp mirror of success/failure
    """

    def __init__(
        self,
        telegram: Optional[TelegramBotClient],
        page: PageConfig,
        whatsapp: Optional[WhatsAppNotifier] = None,
        success_template: Optional[str] = None,
        failure_template: Optional[str] = None,
        winner_template: Optional[str] = None,
    ):
        self.telegram = telegram
        self.page = page
        self.whatsapp = whatsapp
        self.success_template = success_template or settings.TELEGRAM_SUCCESS_TEMPLATE
        self.failure_template = failure_template or settings.TELEGRAM_FAILURE_TEMPLATE
        self.winner_template = winner_template or settings.TELEGRAM_WINNER_TEMPLATE

    @property
    def is_available(self) -> bool:
        return self.telegram is not None and bool(self.page.telegram_chat_id)

    async def _send(
        self,
        text: str,
        image_url: Optional[str] = None,
        thread_id: Optional[int] = None,
    ) -> bool:
        if not self.is_available:
            logger.warning("operator_channel_not_available", page=self.page.name)
            return False

        chat_id = self.page.telegram_chat_id
        try:
            if image_url:
                await self.telegram.send_photo(
                    chat_id, image_url, caption=text[:CAPTION_LIMIT], thread_id=thread_id
                )
            else:
                await self.telegram.send_message(chat_id, text[:MESSAGE_LIMIT], thread_id=thread_id)
            return True
        except Exception as e:
            logger.error("operator_notification_failed", page=self.page.name, error=str(e))
            return False

    async def _mirror(self, success: bool, params: list[str], image_url: Optional[str] = None) -> None:
        if self.whatsapp is None:
            return
        try:
            await self.whatsapp.send(success, params, image_url)
        except Exception as e:
            logger.warning("whatsapp_notification_failed", error=str(e))

    async def notify_success(
        self,
        original_prompt: Optional[str],
        refined_prompt: Optional[str],
        caption: Optional[str],
        permalink: Optional[str],
        image_url: Optional[str] = None,
    ) -> bool:
        params = [original_prompt or "", refined_prompt or "", caption or "", permalink or ""]
        sent = await self._send(format_template(self.success_template, params), image_url=image_url)
        await self._mirror(True, params[:3], image_url)
        logger.info("operator_success_notified", sent=sent)
        return sent

    async def notify_failure(
        self,
        original_prompt: Optional[str],
        refined_prompt: Optional[str],
        error: str,
    ) -> bool:
        params = [original_prompt or "", refined_prompt or "", error or ""]
        sent = await self._send(
            format_template(self.failure_template, params),
            thread_id=self.page.telegram_error_thread_id,
        )
        await self._mirror(False, params)
        logger.info("operator_failure_notified", sent=sent)
        return sent

    async def announce_winner(
        self,
        image_url: str,
        permalink: Optional[str],
        score: float,
    ) -> bool:
        text = format_template(self.winner_template, [f"{score:g}", permalink or image_url])
        return await self._send(text, image_url=image_url)

    async def report_error(self, error: BaseException | str, context: Optional[dict[str, Any]] = None) -> bool:
        """Post an unexpected error to the error thread."""
        message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        lines = [f"[{settings.APP_NAME}:{self.page.name}] {message}"]
        for key, value in (context or {}).items():
            lines.append(f"{key}: {value}")
        return await self._send("\n".join(lines), thread_id=self.page.telegram_error_thread_id)
