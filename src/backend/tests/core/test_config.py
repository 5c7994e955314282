"""
Tests for settings and page resolution.
"""

import pytest


@pytest.mark.unit
class TestPageResolution:
    """Tests for Settings.page."""

    def test_defaults_come_from_global_settings(self):
        """Test that a page without overrides inherits the globals."""
        from core.config import Settings

        settings = Settings(IG_USER_ID="1784", TELEGRAM_CHAT_ID="-100", TELEGRAM_VOTING_THREAD_ID=3)
        page = settings.page()

        assert page.name == "default"
        assert page.ig_user_id == "1784"
        assert page.telegram_chat_id == "-100"
        assert page.telegram_voting_thread_id == 3

    def test_page_overrides_win(self):
        """Test that PAGES_CONFIG entries override the globals."""
        from core.config import Settings

        settings = Settings(
            IG_USER_ID="1784",
            PAGES_CONFIG='{"cats": {"ig_user_id": "9999", "voting_header": "Pick a cat"}}',
        )
        page = settings.page("cats")

        assert page.name == "cats"
        assert page.ig_user_id == "9999"
        assert page.voting_header == "Pick a cat"

    def test_unknown_page_falls_back(self):
        """Test that unknown page names use the defaults."""
        from core.config import Settings

        page = Settings(IG_USER_ID="1784").page("missing")

        assert page.name == "missing"
        assert page.ig_user_id == "1784"

    def test_page_config_is_frozen(self):
        """Test that PageConfig cannot be mutated."""
        from pydantic import ValidationError

        from core.config import PageConfig

        page = PageConfig()
        with pytest.raises(ValidationError):
            page.name = "other"

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            "[1, 2]",
            '{"cats": "9999"}',
            '{"cats": {"telegram_voting_thread_id": "not-a-number"}}',
        ],
    )
    def test_invalid_pages_config(self, raw):
        """Test that malformed PAGES_CONFIG raises ConfigurationError."""
        from core.config import Settings
        from core.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            Settings(PAGES_CONFIG=raw).page("cats")

    async def test_invalid_pages_config_is_a_handled_error(self, app, monkeypatch):
        """Test that a broken PAGES_CONFIG reaches the application error handler."""
        from httpx import ASGITransport, AsyncClient

        from core.config import settings

        monkeypatch.setattr(settings, "PAGES_CONFIG", "{not json")

        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers={"Authorization": "Bearer test-cron-secret"},
        ) as ac:
            response = await ac.get("/api/v1/voting/manage")

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "PAGES_CONFIG" in response.json()["error"]


@pytest.mark.unit
class TestSettingsValidation:
    """Tests for field validators and derived properties."""

    @pytest.mark.parametrize("size", [0, 11])
    def test_media_group_size_bounds(self, size):
        """Test that the media group size must be within 1..10."""
        from pydantic import ValidationError

        from core.config import Settings

        with pytest.raises(ValidationError):
            Settings(TELEGRAM_MEDIA_GROUP_SIZE=size)

    def test_async_database_url(self):
        """Test that plain postgres URLs are moved onto asyncpg."""
        from core.config import Settings

        settings = Settings(DATABASE_URL="postgres://u:p@db:5432/art")

        assert settings.async_database_url == "postgresql+asyncpg://u:p@db:5432/art"

    def test_is_production(self):
        """Test production detection."""
        from core.config import Settings

        assert Settings(APP_ENV="production").is_production is True
        assert Settings(APP_ENV="test").is_production is False
