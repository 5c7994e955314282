"""
Voting Orchestrator

Drives one voting round over the pool of candidate images:

    IDLE  (no image has sent_date)  --manage()-->  OPEN   (open_round)
    OPEN  (images have sent_date)   --manage()-->  IDLE   (close_round)

Votes arrive independently as Telegram callback queries. De-duplication
relies on the unique voter_id in ``voting_users``; vote counters are
incremented with INSERT ... ON CONFLICT, never read-modify-write.

Best-effort steps (stories, announcements, message cleanup, CDN cleanup)
run through SideEffects: failures are logged and recorded, except fatal
credential/configuration errors which abort the sequence.
"""

import hashlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import structlog

from core.config import PageConfig
from core.exceptions import (
    FATAL_ERRORS,
    ConfigurationError,
    DuplicateVoteError,
    TelegramAPIError,
)
from integrations.cloudinary import CloudinaryClient
from integrations.telegram_bot import TelegramBotClient, inline_keyboard
from models.voting import MessagePurpose
from repositories.voting_repository import VotingRepository
from services.content_service import PromptRefiner
from services.instagram_publisher import InstagramPublisher, PublishedMedia
from services.notification_service import OperatorNotifier
from services.scoring_service import ScoredImage, ScoringService

logger = structlog.get_logger(__name__)

VOTE_CALLBACK_PREFIX = "vote:"
SHORT_HASH_LENGTH = 10

VOTE_ACCEPTED_TEXT = "Vote registered, thank you!"
VOTE_DUPLICATE_TEXT = "You have already voted in this round."
VOTE_NOT_FOUND_TEXT = "Image not found. The round may be closed."


def short_hash(url: str) -> str:
    """Compact callback identifier for an image URL (not a security boundary)."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:SHORT_HASH_LENGTH]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VoteStatus(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"


@dataclass
class VoteOutcome:
    status: VoteStatus
    image_url: Optional[str] = None
    votes: Optional[int] = None


@dataclass
class SideEffectRecord:
    name: str
    ok: bool
    error: Optional[str] = None


class SideEffects:
    """Run best-effort steps and keep a record of what failed."""

    def __init__(self) -> None:
        self.records: list[SideEffectRecord] = []

    async def run(self, name: str, action: Awaitable[Any]) -> Any:
        try:
            result = await action
        except FATAL_ERRORS:
            raise
        except Exception as e:
            logger.warning("side_effect_failed", side_effect=name, error=str(e))
            self.records.append(SideEffectRecord(name=name, ok=False, error=str(e)))
            return None
        self.records.append(SideEffectRecord(name=name, ok=True))
        return result

    @property
    def failures(self) -> list[SideEffectRecord]:
        return [r for r in self.records if not r.ok]

    def summary(self) -> list[dict[str, Any]]:
        return [{"name": r.name, "ok": r.ok, "error": r.error} for r in self.records]


@dataclass
class VotingRunResult:
    action: str
    details: dict[str, Any] = field(default_factory=dict)


class VotingOrchestrator:
    """State machine over the voting pool of one page."""

    def __init__(
        self,
        repo: VotingRepository,
        page: PageConfig,
        telegram: Optional[TelegramBotClient],
        publisher: InstagramPublisher,
        scoring: ScoringService,
        notifier: OperatorNotifier,
        refiner: Optional[PromptRefiner] = None,
        cdn: Optional[CloudinaryClient] = None,
        media_group_size: int = 10,
        cdn_cleanup_enabled: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.page = page
        self.telegram = telegram
        self.publisher = publisher
        self.scoring = scoring
        self.notifier = notifier
        self.refiner = refiner
        self.cdn = cdn
        self.media_group_size = media_group_size
        self.cdn_cleanup_enabled = cdn_cleanup_enabled
        self.clock = clock

    # -------------------------------------------------------------------------
    # Trigger
    # -------------------------------------------------------------------------

    async def manage(self) -> VotingRunResult:
        """Open a round when none is open, otherwise close the open one."""
        images = await self.repo.list_images()
        round_open = any(image.sent_date for image in images)

        if not round_open:
            details = await self.open_round()
            return VotingRunResult(action="voting", details=details)

        details = await self.close_round()
        return VotingRunResult(action="publish", details=details)

    # -------------------------------------------------------------------------
    # Open
    # -------------------------------------------------------------------------

    def _require_telegram(self) -> tuple[TelegramBotClient, str]:
        if self.telegram is None or not self.page.telegram_chat_id:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID not configured")
        return self.telegram, self.page.telegram_chat_id

    async def open_round(self) -> dict[str, Any]:
        """
        Send the voting prompt and mark every image as sent.

        An empty pool sends nothing and marks nothing.
        """
        images = await self.repo.list_images()
        if not images:
            logger.info("voting_round_skipped", reason="empty_pool", page=self.page.name)
            return {"total": 0, "sent_buttons": 0, "media_groups": 0}

        telegram, chat_id = self._require_telegram()
        thread_id = self.page.telegram_voting_thread_id
        effects = SideEffects()

        if self.page.voting_open_story_url:
            await effects.run(
                "opening_story", self.publisher.publish_story(self.page.voting_open_story_url)
            )

        first_media_id: Optional[int] = None
        groups = 0
        for start in range(0, len(images), self.media_group_size):
            batch = images[start : start + self.media_group_size]
            photos = [(image.image_url, f"#{start + i + 1}") for i, image in enumerate(batch)]

            if len(photos) == 1:
                url, caption = photos[0]
                messages = [await telegram.send_photo(chat_id, url, caption=caption, thread_id=thread_id)]
            else:
                messages = await telegram.send_media_group(chat_id, photos, thread_id=thread_id)

            groups += 1
            if first_media_id is None and messages:
                first_media_id = messages[0]["message_id"]

        buttons = [
            (f"#{i + 1}", f"{VOTE_CALLBACK_PREFIX}{short_hash(image.image_url)}")
            for i, image in enumerate(images)
        ]
        keyboard_message = await telegram.send_message(
            chat_id,
            self.page.voting_header,
            thread_id=thread_id,
            reply_markup=inline_keyboard(buttons),
        )

        if first_media_id is not None:
            await self.repo.save_message(MessagePurpose.VOTING_MEDIA, first_media_id, chat_id)
        await self.repo.save_message(
            MessagePurpose.VOTING_KEYBOARD, keyboard_message["message_id"], chat_id
        )

        marked = await self.repo.mark_sent(self.clock())
        await self.repo.commit()

        logger.info(
            "voting_round_opened",
            page=self.page.name,
            images=len(images),
            media_groups=groups,
            marked=marked,
        )
        return {
            "total": len(images),
            "sent_buttons": len(buttons),
            "media_groups": groups,
            "side_effects": effects.summary(),
        }

    # -------------------------------------------------------------------------
    # Votes
    # -------------------------------------------------------------------------

    async def handle_vote(self, voter_id: str | int, selected: str) -> VoteOutcome:
        """
        Record one vote.

        ``selected`` is the short hash of an image URL (the URL itself is
        accepted as well).

        Raises:
            DuplicateVoteError: The voter already voted in this round.
        """
        voter = str(voter_id)
        if await self.repo.voter_exists(voter):
            raise DuplicateVoteError("Already voted", context={"voter_id": voter})

        images = await self.repo.list_images()
        match = next(
            (
                image
                for image in images
                if short_hash(image.image_url) == selected or image.image_url == selected
            ),
            None,
        )
        if match is None:
            logger.info("vote_target_not_found", selected=selected)
            return VoteOutcome(status=VoteStatus.NOT_FOUND)

        if not await self.repo.add_voter(voter):
            # Lost the race against a concurrent vote from the same voter
            await self.repo.rollback()
            raise DuplicateVoteError("Already voted", context={"voter_id": voter})

        votes = await self.repo.increment_votes(match.image_url)
        await self.repo.commit()

        logger.info("vote_recorded", image_url=match.image_url, votes=votes)
        return VoteOutcome(status=VoteStatus.ACCEPTED, image_url=match.image_url, votes=votes)

    async def handle_callback(self, update: dict[str, Any]) -> Optional[VoteOutcome]:
        """
        Handle a Telegram update carrying a vote button press.

        Updates without a ``vote:`` callback query are ignored (None).
        """
        query = update.get("callback_query") or {}
        data = query.get("data") or ""
        voter_id = (query.get("from") or {}).get("id")
        if not data.startswith(VOTE_CALLBACK_PREFIX) or voter_id is None:
            return None

        try:
            outcome = await self.handle_vote(voter_id, data[len(VOTE_CALLBACK_PREFIX) :])
        except DuplicateVoteError:
            outcome = VoteOutcome(status=VoteStatus.DUPLICATE)

        text = {
            VoteStatus.ACCEPTED: VOTE_ACCEPTED_TEXT,
            VoteStatus.DUPLICATE: VOTE_DUPLICATE_TEXT,
            VoteStatus.NOT_FOUND: VOTE_NOT_FOUND_TEXT,
        }[outcome.status]

        if self.telegram is not None and query.get("id"):
            try:
                await self.telegram.answer_callback_query(query["id"], text)
            except TelegramAPIError as e:
                logger.warning("callback_answer_failed", error=e.message)

        return outcome

    # -------------------------------------------------------------------------
    # Close
    # -------------------------------------------------------------------------

    async def _winner_caption(self, winner: ScoredImage) -> str:
        fallback = self.page.winner_caption_template.replace("{url}", winner.image_url)
        if self.refiner is None or not winner.prompt:
            return fallback
        try:
            return await self.refiner.generate_caption(winner.prompt)
        except FATAL_ERRORS:
            raise
        except Exception as e:
            logger.warning("winner_caption_fallback", error=str(e))
            return fallback

    async def _publish_winner(self, winner: ScoredImage, caption: str) -> PublishedMedia:
        cover = self.page.winner_cover_image_url
        if cover:
            return await self.publisher.publish_carousel([cover, winner.image_url], caption)
        return await self.publisher.publish_image(winner.image_url, caption)

    async def _edit_voting_media(self) -> None:
        message = await self.repo.get_message(MessagePurpose.VOTING_MEDIA)
        if message is None or self.telegram is None:
            return
        await self.telegram.edit_message_caption(
            message.chat_id or self.page.telegram_chat_id,
            message.message_id,
            self.page.voting_closed_text,
        )

    async def _delete_voting_keyboard(self) -> None:
        message = await self.repo.get_message(MessagePurpose.VOTING_KEYBOARD)
        if message is None or self.telegram is None:
            return
        await self.telegram.delete_message(
            message.chat_id or self.page.telegram_chat_id, message.message_id
        )

    async def close_round(self) -> dict[str, Any]:
        """
        Select, publish and announce the winner, then reset the round.

        A failed winner publish aborts before any cleanup so the round can
        be closed again on the next trigger.
        """
        effects = SideEffects()

        # Refresh before anything is published
        await self.publisher.ensure_ready()

        if self.page.voting_close_story_url:
            await effects.run(
                "closing_story", self.publisher.publish_story(self.page.voting_close_story_url)
            )

        winner = await self.scoring.get_best_photo()
        caption = await self._winner_caption(winner)
        published = await self._publish_winner(winner, caption)

        await effects.run(
            "winner_story",
            self.publisher.publish_story(winner.image_url, sticker_asset_id=published.media_id),
        )
        await effects.run(
            "winner_announcement",
            self.notifier.announce_winner(winner.image_url, published.permalink, winner.score),
        )
        await effects.run("edit_voting_media", self._edit_voting_media())
        await effects.run("delete_voting_keyboard", self._delete_voting_keyboard())

        deleted_folders: list[str] = []
        if self.cdn_cleanup_enabled and self.cdn is not None:
            for folder in await self.repo.list_cloudinary_folders():
                await effects.run(f"delete_folder:{folder}", self.cdn.delete_folder(folder))
                if effects.records[-1].ok:
                    deleted_folders.append(folder)

        cleared = await self.repo.clear_round()
        await self.repo.commit()

        logger.info(
            "voting_round_closed",
            page=self.page.name,
            winner=winner.image_url,
            score=winner.score,
            media_id=published.media_id,
            side_effect_failures=len(effects.failures),
        )
        return {
            "image_url": winner.image_url,
            "votes": winner.votes,
            "score": winner.score,
            "caption": caption,
            "media_id": published.media_id,
            "permalink": published.permalink,
            "cleared": cleared,
            "cloudinary_folders": deleted_folders,
            "side_effects": effects.summary(),
        }
