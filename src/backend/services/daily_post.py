"""
Daily Post Pipeline

prompt -> refine -> generate image -> upload to CDN -> caption ->
publish to Instagram -> enter voting pool -> notify operator
"""

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from core.config import PageConfig
from core.exceptions import ArtVoteError, PipelineError
from integrations.cloudinary import CloudinaryClient
from repositories.prompt_repository import PromptRepository
from repositories.voting_repository import VotingRepository
from services.content_service import ImageGenerator, PromptRefiner
from services.instagram_publisher import InstagramPublisher
from services.notification_service import OperatorNotifier

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DailyPostResult:
    success: bool
    original_prompt: str
    refined_prompt: str
    caption: str
    image_url: str
    cloudinary_folder: str
    media_id: str
    container_id: str
    permalink: Optional[str]
    execution_time: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DailyPostPipeline:
    """Produce and publish one AI-generated post."""

    def __init__(
        self,
        prompts: PromptRepository,
        voting: VotingRepository,
        refiner: PromptRefiner,
        images: ImageGenerator,
        cdn: CloudinaryClient,
        publisher: InstagramPublisher,
        notifier: OperatorNotifier,
        page: PageConfig,
        use_prompt_queue: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.prompts = prompts
        self.voting = voting
        self.refiner = refiner
        self.images = images
        self.cdn = cdn
        self.publisher = publisher
        self.notifier = notifier
        self.page = page
        self.use_prompt_queue = use_prompt_queue
        self.clock = clock

    async def _next_prompt(self) -> tuple[Optional[int], str]:
        if self.use_prompt_queue:
            queued = await self.prompts.get_next()
            if queued is not None:
                return queued.id, queued.prompt
            logger.info("prompt_queue_empty", page=self.page.name)
        return None, await self.refiner.default_prompt()

    async def execute(self) -> DailyPostResult:
        """
        Run the pipeline once.

        Raises:
            PipelineError: Any step failed. The operator has been notified and
                the context carries the original and refined prompts.
        """
        started = time.monotonic()
        original = ""
        refined = ""

        try:
            prompt_id, original = await self._next_prompt()
            refined = await self.refiner.refine_text(original)

            generated = await self.images.generate_image(refined)

            now = self.clock()
            folder = f"{self.page.cloudinary_folder}/{now:%Y-%m-%d}"
            uploaded = await self.cdn.upload(
                generated,
                folder=folder,
                public_id=f"daily_{int(now.timestamp() * 1000)}",
            )

            try:
                caption = await self.refiner.generate_caption(refined)
            except ArtVoteError as e:
                logger.warning("caption_fallback", error=e.message)
                caption = refined

            published = await self.publisher.publish_image(uploaded.public_url, caption)

            await self.voting.add_image(
                uploaded.public_url,
                instagram_post_id=published.media_id,
                cloudinary_folder=folder,
                prompt=refined,
            )
            if prompt_id is not None:
                await self.prompts.remove(prompt_id)
            await self.voting.commit()

        except Exception as e:
            await self.voting.rollback()
            message = e.message if isinstance(e, ArtVoteError) else str(e)
            context = dict(e.context) if isinstance(e, ArtVoteError) else {}
            context.update(original_prompt=original, refined_prompt=refined)

            logger.error("daily_post_failed", page=self.page.name, error=message, **context)
            await self.notifier.notify_failure(original, refined, message)
            raise PipelineError(f"Daily post failed: {message}", context=context) from e

        execution_time = f"{time.monotonic() - started:.2f}s"
        await self.notifier.notify_success(
            original, refined, caption, published.permalink, image_url=uploaded.public_url
        )
        logger.info(
            "daily_post_completed",
            page=self.page.name,
            media_id=published.media_id,
            execution_time=execution_time,
        )
        return DailyPostResult(
            success=True,
            original_prompt=original,
            refined_prompt=refined,
            caption=caption,
            image_url=uploaded.public_url,
            cloudinary_folder=folder,
            media_id=published.media_id,
            container_id=published.container_id,
            permalink=published.permalink,
            execution_time=execution_time,
        )

    async def run(self, count: int = 1) -> list[DailyPostResult]:
        """Run the pipeline ``count`` times, stopping at the first failure."""
        results = []
        for _ in range(max(count, 1)):
            results.append(await self.execute())
        return results
