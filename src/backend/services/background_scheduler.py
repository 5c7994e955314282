"""
Background Scheduler Service

Optional in-process triggers using APScheduler:
- Daily post pipeline (DAILY_POST_CRON)
- Voting round open/close (VOTING_CRON)

External cron calling the API endpoints is the default trigger; this
scheduler only runs when SCHEDULER_ENABLED is set.
"""

import logging
from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from core.config import settings
from core.error_reporting import report_error
from db.session import async_session_maker

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def daily_post_job() -> None:
    """Run the daily post pipeline DAILY_POST_NUMBER times."""
    from services.service_factory import build_daily_post_pipeline, create_http_client

    logger.info("Starting daily post job...")

    try:
        async with async_session_maker() as db, create_http_client() as http_client:
            pipeline = build_daily_post_pipeline(db, http_client, settings.page())
            results = await pipeline.run(settings.DAILY_POST_NUMBER)
            logger.info(f"Daily post job completed: published={len(results)}")
    except Exception as e:
        logger.error(f"Daily post job failed: {e}", exc_info=True)
        await report_error(e, {"operation": "daily_post_job"})


async def voting_job() -> None:
    """Open or close the voting round."""
    from services.service_factory import build_voting_orchestrator, create_http_client

    logger.info("Starting voting job...")

    try:
        async with async_session_maker() as db, create_http_client() as http_client:
            orchestrator = build_voting_orchestrator(db, http_client, settings.page())
            result = await orchestrator.manage()
            logger.info(f"Voting job completed: action={result.action}")
    except Exception as e:
        logger.error(f"Voting job failed: {e}", exc_info=True)
        await report_error(e, {"operation": "voting_job"})


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone=timezone.utc)
    return _scheduler


async def start_scheduler() -> None:
    """Start the background scheduler with all jobs."""
    scheduler = get_scheduler()

    if scheduler.running:
        logger.info("Scheduler already running")
        return

    logger.info("Configuring background scheduler...")

    scheduler.add_job(
        daily_post_job,
        trigger=CronTrigger.from_crontab(settings.DAILY_POST_CRON, timezone=timezone.utc),
        id="daily_post",
        name="Daily Post",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"Added daily post job ({settings.DAILY_POST_CRON})")

    scheduler.add_job(
        voting_job,
        trigger=CronTrigger.from_crontab(settings.VOTING_CRON, timezone=timezone.utc),
        id="voting",
        name="Voting Round",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"Added voting job ({settings.VOTING_CRON})")

    scheduler.start()
    logger.info("Background scheduler started")


async def stop_scheduler() -> None:
    """Stop the background scheduler gracefully."""
    global _scheduler

    if _scheduler and _scheduler.running:
        logger.info("Stopping background scheduler...")
        _scheduler.shutdown(wait=True)
        logger.info("Background scheduler stopped")

    _scheduler = None
