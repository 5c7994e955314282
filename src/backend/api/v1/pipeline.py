"""
Daily post endpoint (cron trigger).
"""

from fastapi import APIRouter, Depends

from api.deps import get_daily_post_pipeline, verify_cron_secret
from core.config import settings
from schemas.pipeline import DailyPostResponse, PipelineRunResponse
from services.daily_post import DailyPostPipeline

router = APIRouter()


@router.get(
    "/run",
    response_model=PipelineRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_daily_post(
    pipeline: DailyPostPipeline = Depends(get_daily_post_pipeline),
) -> PipelineRunResponse:
    """
    Generate and publish the daily post(s).

    Runs DAILY_POST_NUMBER times. Failures are reported to the operator by
    the pipeline and surface here as a 500 with the error message.
    """
    results = await pipeline.run(settings.DAILY_POST_NUMBER)
    return PipelineRunResponse(
        results=[DailyPostResponse(**result.to_dict()) for result in results]
    )
