"""
Scoring Engine

score = like_count * W_like + comments_count * W_comment + votes * W_vote

Engagement metrics come from the Graph API; local votes from the pool.
A failed metrics lookup scores that item with 0 likes and 0 comments
instead of failing the batch.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from core.config import settings
from core.exceptions import FATAL_ERRORS, NoImagesError
from repositories.voting_repository import VotingRepository

logger = structlog.get_logger(__name__)

MetricsFetcher = Callable[[str], Awaitable[dict[str, int]]]
PrepareHook = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ScoreWeights:
    like: float = 1.0
    comment: float = 1.0
    vote: float = 1.0

    @classmethod
    def from_settings(cls) -> "ScoreWeights":
        return cls(
            like=settings.SCORE_LIKE_MULTIPLIER,
            comment=settings.SCORE_COMMENT_MULTIPLIER,
            vote=settings.SCORE_VOTE_MULTIPLIER,
        )


@dataclass
class ScoredImage:
    image_url: str
    instagram_post_id: Optional[str]
    votes: int
    like_count: int
    comments_count: int
    score: float
    prompt: Optional[str] = None


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def compute_score(likes: int, comments: int, votes: int, weights: ScoreWeights) -> float:
    return likes * weights.like + comments * weights.comment + votes * weights.vote


def pick_best(scored: Sequence[ScoredImage]) -> Optional[ScoredImage]:
    """Item with the strictly greatest score; on ties the first one wins."""
    best: Optional[ScoredImage] = None
    for item in scored:
        if best is None or item.score > best.score:
            best = item
    return best


class ScoringService:
    """Rank the voting pool."""

    def __init__(
        self,
        fetch_metrics: Optional[MetricsFetcher],
        weights: Optional[ScoreWeights] = None,
        repo: Optional[VotingRepository] = None,
        before_fetch: Optional[PrepareHook] = None,
    ):
        self.fetch_metrics = fetch_metrics
        self.weights = weights or ScoreWeights.from_settings()
        self.repo = repo
        # Runs once before the concurrent lookups (e.g. load the access token)
        self.before_fetch = before_fetch

    async def _metrics_for(self, item: Any) -> tuple[int, int]:
        post_id = _field(item, "instagram_post_id")
        if not post_id or self.fetch_metrics is None:
            return 0, 0
        try:
            metrics = await self.fetch_metrics(post_id)
        except FATAL_ERRORS:
            raise
        except Exception as e:
            logger.warning("metrics_fetch_failed", instagram_post_id=post_id, error=str(e))
            return 0, 0
        return int(metrics.get("like_count") or 0), int(metrics.get("comments_count") or 0)

    async def score_items(self, items: Sequence[Any]) -> list[ScoredImage]:
        """Score every item concurrently; output order equals input order."""
        if self.before_fetch is not None and any(_field(i, "instagram_post_id") for i in items):
            await self.before_fetch()

        metrics = await asyncio.gather(*(self._metrics_for(item) for item in items))

        scored = []
        for item, (likes, comments) in zip(items, metrics):
            votes = int(_field(item, "votes") or 0)
            scored.append(
                ScoredImage(
                    image_url=_field(item, "image_url", ""),
                    instagram_post_id=_field(item, "instagram_post_id"),
                    votes=votes,
                    like_count=likes,
                    comments_count=comments,
                    score=compute_score(likes, comments, votes, self.weights),
                    prompt=_field(item, "prompt"),
                )
            )
        return scored

    async def get_best_photo(self) -> ScoredImage:
        """
        Load the pool, score it and return the winner.

        Raises:
            NoImagesError: The pool is empty.
        """
        if self.repo is None:
            raise RuntimeError("ScoringService needs a VotingRepository to load the pool")

        images = await self.repo.list_images()
        if not images:
            raise NoImagesError("No images available to publish", context={"step": "get_best_photo"})

        scored = await self.score_items(images)
        best = pick_best(scored)

        logger.info(
            "winner_selected",
            image_url=best.image_url,
            score=best.score,
            votes=best.votes,
            candidates=len(scored),
        )
        return best
