"""Tests for the operator notification service."""

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def telegram():
    mock = MagicMock()
    mock.send_message = AsyncMock(return_value={"message_id": 1})
    mock.send_photo = AsyncMock(return_value={"message_id": 2})
    return mock


@pytest.fixture
def notifier(telegram, page_config):
    from services.notification_service import OperatorNotifier

    return OperatorNotifier(
        telegram,
        page_config,
        success_template="OK {0} | {1} | {2} | {3}",
        failure_template="KO {0} | {1} | {2}",
        winner_template="Winner {0} {1}",
    )


@pytest.mark.unit
class TestFormatTemplate:
    """Tests for format_template."""

    def test_positional_placeholders(self):
        """Test that {0}..{3} are replaced in order."""
        from services.notification_service import format_template

        assert format_template("{0}-{1}-{2}-{3}", ["a", "b", "c", "d"]) == "a-b-c-d"

    def test_missing_values_become_empty(self):
        """Test that absent or None parameters are blank."""
        from services.notification_service import format_template

        assert format_template("[{0}][{1}][{2}]", ["a", None]) == "[a][][]"

    def test_braces_in_values_are_kept(self):
        """Test that values containing braces are not reformatted."""
        from services.notification_service import format_template

        assert format_template("{0} {1}", ["{1}", "x"]) == "{1} x"


@pytest.mark.unit
class TestOperatorNotifier:
    """Tests for OperatorNotifier."""

    async def test_success_with_image_sends_photo(self, notifier, telegram):
        """Test that a success with an image is sent as a captioned photo."""
        sent = await notifier.notify_success(
            "cat", "a fluffy cat", "caption", "https://ig/p/1", image_url="https://cdn/1.png"
        )

        assert sent is True
        args, kwargs = telegram.send_photo.call_args
        assert args == ("-1001234567890", "https://cdn/1.png")
        assert kwargs["caption"] == "OK cat | a fluffy cat | caption | https://ig/p/1"
        telegram.send_message.assert_not_called()

    async def test_caption_is_truncated(self, notifier, telegram):
        """Test that photo captions respect the Telegram limit."""
        await notifier.notify_success("x" * 2000, "", "", "", image_url="https://cdn/1.png")

        assert len(telegram.send_photo.call_args.kwargs["caption"]) == 1024

    async def test_failure_goes_to_error_thread(self, notifier, telegram):
        """Test that failures are posted in the error thread."""
        await notifier.notify_failure("cat", "", "Imagen quota exceeded")

        args, kwargs = telegram.send_message.call_args
        assert args[1] == "KO cat |  | Imagen quota exceeded"
        assert kwargs["thread_id"] == 9

    async def test_winner_announcement(self, notifier, telegram):
        """Test the winner template with score and permalink."""
        await notifier.announce_winner("https://cdn/w.png", "https://ig/p/w", 12.0)

        assert telegram.send_photo.call_args.kwargs["caption"] == "Winner 12 https://ig/p/w"

    async def test_winner_without_permalink_uses_image(self, notifier, telegram):
        """Test that the image URL stands in for a missing permalink."""
        await notifier.announce_winner("https://cdn/w.png", None, 2.5)

        assert telegram.send_photo.call_args.kwargs["caption"] == "Winner 2.5 https://cdn/w.png"

    async def test_send_failure_returns_false(self, notifier, telegram):
        """Test that a Telegram error is swallowed and reported as False."""
        from core.exceptions import TelegramAPIError

        telegram.send_message.side_effect = TelegramAPIError("chat not found")

        assert await notifier.report_error(RuntimeError("boom"), {"operation": "/x"}) is False

    async def test_report_error_formats_context(self, notifier, telegram):
        """Test that error reports carry type, message and context lines."""
        await notifier.report_error(ValueError("bad input"), {"operation": "/api/v1/voting/manage"})

        text = telegram.send_message.call_args.args[1]
        assert "ValueError: bad input" in text
        assert "operation: /api/v1/voting/manage" in text

    async def test_unavailable_without_telegram(self, page_config):
        """Test that a missing bot client makes every call a no-op."""
        from services.notification_service import OperatorNotifier

        notifier = OperatorNotifier(None, page_config)

        assert notifier.is_available is False
        assert await notifier.notify_failure("a", "b", "c") is False

    async def test_whatsapp_mirror_failure_is_ignored(self, telegram, page_config):
        """Test that a failing WhatsApp mirror does not affect the result."""
        from services.notification_service import OperatorNotifier

        whatsapp = MagicMock()
        whatsapp.send = AsyncMock(side_effect=RuntimeError("template not approved"))
        notifier = OperatorNotifier(telegram, page_config, whatsapp=whatsapp)

        assert await notifier.notify_success("a", "b", "c", "d") is True
        whatsapp.send.assert_awaited_once_with(True, ["a", "b", "c"], None)


@pytest.mark.unit
class TestWhatsAppNotifier:
    """Tests for WhatsAppNotifier."""

    async def test_send_uses_stored_token_and_template(self):
        """Test that the WhatsApp token is read from the store."""
        from services.notification_service import WhatsAppNotifier

        store = MagicMock()
        store.get = AsyncMock(return_value=MagicMock(token="wa-token"))
        client = MagicMock()
        client.send_template = AsyncMock()
        notifier = WhatsAppNotifier(client, store, "393330000000", "ok_tpl", "ko_tpl")

        await notifier.send(False, ["a", "b", "err"], image_url="https://cdn/x.png")

        token, message = client.send_template.call_args.args
        assert token == "wa-token"
        assert message["to"] == "393330000000"
        assert message["template"]["name"] == "ko_tpl"
