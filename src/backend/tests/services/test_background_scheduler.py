"""Tests for the optional background scheduler."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest


@pytest.mark.unit
class TestSchedulerJobs:
    """Tests for the scheduled jobs."""

    async def test_voting_job_reports_failures(self):
        """Test that a failing voting job is reported instead of raised."""
        from services import background_scheduler

        session_cm = MagicMock()
        session_cm.__aenter__ = AsyncMock(return_value=MagicMock())
        session_cm.__aexit__ = AsyncMock(return_value=False)
        orchestrator = MagicMock()
        orchestrator.manage = AsyncMock(side_effect=RuntimeError("db down"))

        with (
            patch.object(background_scheduler, "async_session_maker", return_value=session_cm),
            patch("services.service_factory.build_voting_orchestrator", return_value=orchestrator),
            patch.object(background_scheduler, "report_error", new=AsyncMock()) as report,
        ):
            await background_scheduler.voting_job()

        report.assert_awaited_once()
        assert report.call_args.args[1] == {"operation": "voting_job"}

    async def test_daily_post_job_runs_pipeline(self):
        """Test that the daily job runs the pipeline DAILY_POST_NUMBER times."""
        from core.config import settings
        from services import background_scheduler

        session_cm = MagicMock()
        session_cm.__aenter__ = AsyncMock(return_value=MagicMock())
        session_cm.__aexit__ = AsyncMock(return_value=False)
        pipeline = MagicMock()
        pipeline.run = AsyncMock(return_value=[MagicMock()])

        with (
            patch.object(background_scheduler, "async_session_maker", return_value=session_cm),
            patch("services.service_factory.build_daily_post_pipeline", return_value=pipeline),
            patch.object(background_scheduler, "report_error", new=AsyncMock()) as report,
        ):
            await background_scheduler.daily_post_job()

        pipeline.run.assert_awaited_once_with(settings.DAILY_POST_NUMBER)
        report.assert_not_called()


@pytest.mark.unit
class TestSchedulerLifecycle:
    """Tests for start and stop."""

    async def test_start_registers_cron_jobs(self):
        """Test that both jobs are registered with their cron triggers."""
        from services import background_scheduler

        scheduler = MagicMock()
        scheduler.running = False

        with patch.object(background_scheduler, "get_scheduler", return_value=scheduler):
            await background_scheduler.start_scheduler()

        job_ids = [c.kwargs["id"] for c in scheduler.add_job.call_args_list]
        assert job_ids == ["daily_post", "voting"]
        scheduler.start.assert_called_once()

    async def test_start_is_idempotent(self):
        """Test that a running scheduler is left alone."""
        from services import background_scheduler

        scheduler = MagicMock()
        scheduler.running = True

        with patch.object(background_scheduler, "get_scheduler", return_value=scheduler):
            await background_scheduler.start_scheduler()

        scheduler.add_job.assert_not_called()

    async def test_stop_clears_instance(self):
        """Test that stopping shuts the scheduler down and forgets it."""
        from services import background_scheduler

        scheduler = MagicMock()
        scheduler.running = True
        background_scheduler._scheduler = scheduler

        await background_scheduler.stop_scheduler()

        scheduler.shutdown.assert_called_once_with(wait=True)
        assert background_scheduler._scheduler is None
