"""
Tests for the Instagram publish protocols.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def graph():
    from integrations.graph_api import ContainerState, ContainerStatus

    mock = MagicMock()
    ids = iter(f"c-{i}" for i in range(1, 20))
    mock.create_media_container = AsyncMock(side_effect=lambda **kwargs: next(ids))
    mock.poll_container_status = AsyncMock(
        return_value=ContainerStatus(ContainerState.FINISHED, {"status_code": "FINISHED"}, 1)
    )
    mock.publish_container = AsyncMock(return_value="m-1")
    mock.fetch_fields = AsyncMock(return_value={"permalink": "https://instagram.com/p/abc"})
    return mock


@pytest.fixture
def tokens():
    credential = MagicMock()
    credential.token = "fresh-token"
    mock = MagicMock()
    mock.get_fresh_credential = AsyncMock(return_value=credential)
    return mock


@pytest.fixture
def publisher(graph, tokens):
    from services.instagram_publisher import InstagramPublisher

    return InstagramPublisher(graph, tokens, "1784", poll_interval_ms=10, poll_max_attempts=3)


@pytest.mark.unit
class TestInstagramPublisher:
    """Tests for InstagramPublisher."""

    async def test_publish_image(self, publisher, graph, tokens):
        """Test container, poll, publish and permalink in order."""
        published = await publisher.publish_image("https://cdn/a.png", "caption")

        tokens.get_fresh_credential.assert_awaited_once()
        graph.create_media_container.assert_awaited_once_with(
            token="fresh-token", account_id="1784", url="https://cdn/a.png", caption="caption"
        )
        graph.poll_container_status.assert_awaited_once_with(
            token="fresh-token", container_id="c-1", interval_ms=10, max_attempts=3
        )
        assert published.container_id == "c-1"
        assert published.media_id == "m-1"
        assert published.permalink == "https://instagram.com/p/abc"

    async def test_publish_carousel_children_in_order(self, publisher, graph):
        """Test that children are created in order before the parent."""
        await publisher.publish_carousel(["https://a", "https://b"], "caption")

        calls = graph.create_media_container.await_args_list
        assert [c.kwargs.get("url") for c in calls[:2]] == ["https://a", "https://b"]
        assert all(c.kwargs["is_carousel_item"] for c in calls[:2])
        assert calls[2].kwargs["media_type"] == "CAROUSEL"
        assert calls[2].kwargs["children_ids"] == ["c-1", "c-2"]
        assert graph.publish_container.await_args.kwargs["container_id"] == "c-3"

    async def test_carousel_needs_two_images(self, publisher):
        """Test that a one-image carousel is refused."""
        with pytest.raises(ValueError):
            await publisher.publish_carousel(["https://a"])

    async def test_story_links_sticker_and_skips_permalink(self, publisher, graph):
        """Test that stories forward the sticker and do not fetch a permalink."""
        published = await publisher.publish_story("https://cdn/story.png", sticker_asset_id="m-0")

        assert graph.create_media_container.await_args.kwargs["media_type"] == "STORIES"
        assert graph.publish_container.await_args.kwargs["sticker_asset_id"] == "m-0"
        graph.fetch_fields.assert_not_called()
        assert published.permalink is None

    async def test_container_error_aborts_before_publish(self, publisher, graph):
        """Test that an ERROR container raises and is never published."""
        from core.exceptions import ContainerNotReadyError
        from integrations.graph_api import ContainerState, ContainerStatus

        graph.poll_container_status.return_value = ContainerStatus(
            ContainerState.ERROR, {"status_code": "ERROR"}, 2
        )

        with pytest.raises(ContainerNotReadyError) as exc_info:
            await publisher.publish_image("https://cdn/a.png")

        graph.publish_container.assert_not_called()
        assert exc_info.value.context["status"] == "ERROR"

    async def test_permalink_failure_keeps_media(self, publisher, graph):
        """Test that a failed permalink lookup still returns the media id."""
        from core.exceptions import FieldFetchError

        graph.fetch_fields.side_effect = FieldFetchError("nope")

        published = await publisher.publish_image("https://cdn/a.png")

        assert published.media_id == "m-1"
        assert published.permalink is None

    async def test_refresh_failure_aborts_before_graph_calls(self, publisher, graph, tokens):
        """Test that no container is created when the token refresh fails."""
        from core.exceptions import RefreshFailedError

        tokens.get_fresh_credential.side_effect = RefreshFailedError("expired")

        with pytest.raises(RefreshFailedError):
            await publisher.publish_image("https://cdn/a.png")
        graph.create_media_container.assert_not_called()

    async def test_missing_account(self, graph, tokens):
        """Test that a missing account id is a configuration error."""
        from core.exceptions import ConfigurationError
        from services.instagram_publisher import InstagramPublisher

        with pytest.raises(ConfigurationError):
            await InstagramPublisher(graph, tokens, None).publish_image("https://a")

    async def test_fetch_metrics_reuses_token(self, publisher, graph, tokens):
        """Test that metrics reuse the cached token after ensure_ready."""
        graph.fetch_fields.return_value = {"like_count": 12, "comments_count": None}

        await publisher.ensure_ready()
        metrics = await publisher.fetch_metrics("m-9")

        assert metrics == {"like_count": 12, "comments_count": 0}
        assert tokens.get_fresh_credential.await_count == 1
