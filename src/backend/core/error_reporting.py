"""
Error reporting to the operator channel.

``report_error`` posts an error to the Telegram error thread with its own
short-lived HTTP client, so it works outside request scope.
``install_global_error_handlers`` wires it into the asyncio loop and
``sys.excepthook`` once per process.
"""

import asyncio
import sys
from typing import Any, Optional

import httpx
import structlog

from core.config import PageConfig, settings
from core.exceptions import ConfigurationError
from integrations.telegram_bot import TelegramBotClient

logger = structlog.get_logger(__name__)

_handlers_installed = False
_pending_reports: set[asyncio.Task] = set()


def _resolve_page(page_name: Optional[str]) -> PageConfig:
    try:
        return settings.page(page_name)
    except ConfigurationError as e:
        # a broken PAGES_CONFIG must still reach the operator
        logger.warning("error_report_page_fallback", error=e.message)
        return PageConfig(
            name=page_name or settings.PAGE_NAME or "default",
            ig_user_id=settings.IG_USER_ID,
            telegram_chat_id=settings.TELEGRAM_CHAT_ID,
            telegram_voting_thread_id=settings.TELEGRAM_VOTING_THREAD_ID,
            telegram_error_thread_id=settings.TELEGRAM_ERROR_THREAD_ID,
        )


async def report_error(
    error: BaseException | str,
    context: Optional[dict[str, Any]] = None,
    page_name: Optional[str] = None,
) -> bool:
    """Send an error report; never raises."""
    from services.notification_service import OperatorNotifier

    if not settings.TELEGRAM_BOT_TOKEN:
        return False

    try:
        page = _resolve_page(page_name)
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as http_client:
            telegram = TelegramBotClient(
                http_client, settings.TELEGRAM_BOT_TOKEN, parse_mode=None
            )
            return await OperatorNotifier(telegram, page).report_error(error, context)
    except Exception as e:
        logger.error("error_report_failed", error=str(e))
        return False


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    loop.default_exception_handler(context)
    error = context.get("exception") or context.get("message", "unknown asyncio error")
    task = loop.create_task(report_error(error, {"source": "asyncio"}))
    _pending_reports.add(task)
    task.add_done_callback(_pending_reports.discard)


def _make_excepthook(previous):
    def hook(exc_type, exc, tb):
        previous(exc_type, exc, tb)
        if issubclass(exc_type, KeyboardInterrupt):
            return
        try:
            asyncio.run(report_error(exc, {"source": "excepthook"}))
        except RuntimeError as e:
            logger.error("excepthook_report_skipped", error=str(e))

    return hook


def install_global_error_handlers(loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
    """
    Install the process-level error hooks.

    Returns True on the first call and False afterwards.
    """
    global _handlers_installed
    if _handlers_installed:
        return False
    _handlers_installed = True

    if loop is None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
    if loop is not None:
        loop.set_exception_handler(_loop_exception_handler)

    sys.excepthook = _make_excepthook(sys.excepthook)
    logger.info("global_error_handlers_installed")
    return True
