"""
Tests for the voting, pipeline and token endpoints.

Services are replaced through app.dependency_overrides.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

URL_A = "https://res.cloudinary.com/demo/a.png"


@pytest.fixture
def orchestrator(voting_repo, page_config, mock_telegram):
    from services.instagram_publisher import PublishedMedia
    from services.scoring_service import ScoringService
    from services.voting_orchestrator import VotingOrchestrator

    publisher = MagicMock()
    publisher.ensure_ready = AsyncMock()
    publisher.publish_image = AsyncMock(return_value=PublishedMedia("c", "m-1", "https://ig/p/1"))
    publisher.publish_story = AsyncMock(return_value=PublishedMedia("s", "m-s"))
    notifier = MagicMock()
    notifier.announce_winner = AsyncMock(return_value=True)

    return VotingOrchestrator(
        voting_repo,
        page_config,
        mock_telegram,
        publisher,
        ScoringService(None, repo=voting_repo),
        notifier,
    )


@pytest.fixture
def override_orchestrator(app, orchestrator):
    from api.deps import get_voting_orchestrator

    app.dependency_overrides[get_voting_orchestrator] = lambda: orchestrator
    return orchestrator


@pytest.mark.unit
class TestVotingEndpoints:
    """Tests for /api/v1/voting."""

    async def test_manage_requires_cron_secret(self, app, override_orchestrator) -> None:
        """Test that the trigger rejects calls without the secret."""
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as anonymous:
            response = await anonymous.get("/api/v1/voting/manage")

        assert response.status_code == 401

    async def test_manage_opens_round(self, client, override_orchestrator, voting_repo) -> None:
        """Test that the first trigger opens the round."""
        voting_repo.seed(URL_A, "https://res.cloudinary.com/demo/b.png")

        response = await client.get("/api/v1/voting/manage")

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "voting"
        assert data["details"]["total"] == 2

    async def test_manage_closes_round(self, client, override_orchestrator, voting_repo) -> None:
        """Test that a trigger on an open round publishes the winner."""
        voting_repo.seed(URL_A, sent_date=datetime.now(timezone.utc), votes=2)

        response = await client.get("/api/v1/voting/manage")

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "publish"
        assert data["details"]["image_url"] == URL_A
        assert voting_repo.images == []

    async def test_vote_accepted_then_duplicate(self, client, override_orchestrator, voting_repo) -> None:
        """Test the direct vote endpoint outcomes."""
        from services.voting_orchestrator import short_hash

        voting_repo.seed(URL_A)
        body = {"voter_id": "42", "image_hash": short_hash(URL_A)}

        first = await client.post("/api/v1/voting/vote", json=body)
        second = await client.post("/api/v1/voting/vote", json=body)

        assert first.status_code == 200
        assert first.json()["status"] == "accepted"
        assert first.json()["votes"] == 1
        assert second.status_code == 200
        assert second.json() == {
            "success": False,
            "status": "duplicate",
            "message": "You have already voted in this round.",
            "image_url": None,
            "votes": None,
        }

    async def test_vote_unknown_image(self, client, override_orchestrator, voting_repo) -> None:
        """Test that an unknown hash answers not_found."""
        response = await client.post("/api/v1/voting/vote", json={"voter_id": "42", "image_hash": "abc"})

        assert response.json()["status"] == "not_found"
        assert response.json()["success"] is False

    async def test_vote_validation(self, client, override_orchestrator) -> None:
        """Test that an empty voter id is a validation error."""
        response = await client.post("/api/v1/voting/vote", json={"voter_id": "", "image_hash": "abc"})

        assert response.status_code == 422

    async def test_close_on_empty_pool_is_404(self, client, app) -> None:
        """Test that NoImagesError maps to 404 with the error body."""
        from api.deps import get_voting_orchestrator
        from core.exceptions import NoImagesError

        failing = MagicMock()
        failing.manage = AsyncMock(side_effect=NoImagesError("No images available to publish"))
        app.dependency_overrides[get_voting_orchestrator] = lambda: failing

        response = await client.get("/api/v1/voting/manage")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "No images available to publish"}

    async def test_publish_error_is_500(self, client, app) -> None:
        """Test that known errors answer 500 with their message."""
        from api.deps import get_voting_orchestrator
        from core.exceptions import PublishError

        failing = MagicMock()
        failing.manage = AsyncMock(side_effect=PublishError("Publish error: rate limited"))
        app.dependency_overrides[get_voting_orchestrator] = lambda: failing

        response = await client.get("/api/v1/voting/manage")

        assert response.status_code == 500
        assert response.json()["error"] == "Publish error: rate limited"


@pytest.mark.unit
class TestPipelineEndpoint:
    """Tests for /api/v1/pipeline/run."""

    async def test_run(self, client, app) -> None:
        """Test that pipeline results are returned."""
        from api.deps import get_daily_post_pipeline
        from services.daily_post import DailyPostResult

        pipeline = MagicMock()
        pipeline.run = AsyncMock(
            return_value=[
                DailyPostResult(
                    True, "fox", "red fox", "caption", "https://res/x.png",
                    "daily-posts/2026-10-19", "m-1", "c-1", "https://ig/p/1", "3.20s",
                )
            ]
        )
        app.dependency_overrides[get_daily_post_pipeline] = lambda: pipeline

        response = await client.get("/api/v1/pipeline/run")

        assert response.status_code == 200
        [result] = response.json()["results"]
        assert result["media_id"] == "m-1"
        assert result["permalink"] == "https://ig/p/1"

    async def test_run_failure(self, client, app) -> None:
        """Test that a pipeline failure answers 500 with the message."""
        from api.deps import get_daily_post_pipeline
        from core.exceptions import PipelineError

        pipeline = MagicMock()
        pipeline.run = AsyncMock(side_effect=PipelineError("Daily post failed: quota"))
        app.dependency_overrides[get_daily_post_pipeline] = lambda: pipeline

        response = await client.get("/api/v1/pipeline/run")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Daily post failed: quota"}


@pytest.mark.unit
class TestTokenEndpoint:
    """Tests for /api/v1/tokens/instagram/exchange."""

    async def test_exchange(self, client, app) -> None:
        """Test that the exchange result is returned without the token."""
        from api.deps import get_token_manager

        manager = MagicMock()
        manager.exchange_short_lived_token = AsyncMock(
            return_value={
                "token_type": "INSTAGRAM",
                "expires_in": 5184000,
                "created_at": datetime(2026, 10, 19, tzinfo=timezone.utc),
            }
        )
        app.dependency_overrides[get_token_manager] = lambda: manager

        response = await client.post(
            "/api/v1/tokens/instagram/exchange", json={"short_lived_token": "EAAG-short-lived"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "INSTAGRAM"
        assert "access_token" not in data
        manager.exchange_short_lived_token.assert_awaited_once_with("EAAG-short-lived")

    async def test_short_token_rejected(self, client, app) -> None:
        """Test request validation on the token length."""
        from api.deps import get_token_manager

        app.dependency_overrides[get_token_manager] = lambda: MagicMock()

        response = await client.post("/api/v1/tokens/instagram/exchange", json={"short_lived_token": "x"})

        assert response.status_code == 422
