"""
Voting repository.

Owns the voting pool, the voter table and the tracked Telegram messages.
Counters are changed with INSERT ... ON CONFLICT statements so concurrent
votes never lose updates.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from models.voting import MessagePurpose, TelegramMessage, VotingImage, VotingUser


class VotingRepository:
    """Repository for voting round state."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        return getattr(result, "rowcount", 0) or 0

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    async def list_images(self) -> list[VotingImage]:
        """All images in the pool, in insertion order."""
        result = await self.db.execute(select(VotingImage).order_by(VotingImage.id.asc()))
        return list(result.scalars().all())

    async def add_image(
        self,
        image_url: str,
        instagram_post_id: Optional[str] = None,
        cloudinary_folder: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> None:
        """Enter an image into the pool (no-op if the URL is already there)."""
        stmt = (
            insert(VotingImage)
            .values(
                image_url=image_url,
                instagram_post_id=instagram_post_id,
                cloudinary_folder=cloudinary_folder,
                prompt=prompt,
                votes=0,
            )
            .on_conflict_do_nothing(index_elements=[VotingImage.image_url])
        )
        await self.db.execute(stmt)

    async def mark_sent(self, sent_at: datetime) -> int:
        """Stamp every image with the round opening time."""
        result = await self.db.execute(update(VotingImage).values(sent_date=sent_at))
        return self._get_rowcount(result)

    async def increment_votes(self, image_url: str) -> int:
        """
        Atomically add one vote to an image.

        An absent row is created with votes=0.
        Returns the stored vote count.
        """
        stmt = (
            insert(VotingImage)
            .values(image_url=image_url, votes=0)
            .on_conflict_do_update(
                index_elements=[VotingImage.image_url],
                set_={"votes": VotingImage.votes + 1},
            )
            .returning(VotingImage.votes)
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def list_cloudinary_folders(self) -> list[str]:
        """Distinct CDN folders used by the images of the round."""
        result = await self.db.execute(
            select(VotingImage.cloudinary_folder)
            .where(VotingImage.cloudinary_folder.isnot(None))
            .distinct()
        )
        return [row for row in result.scalars().all() if row]

    # -------------------------------------------------------------------------
    # Voters
    # -------------------------------------------------------------------------

    async def voter_exists(self, voter_id: str) -> bool:
        """Check if a voter already voted in this round."""
        result = await self.db.execute(
            select(func.count(VotingUser.id)).where(VotingUser.voter_id == voter_id)
        )
        count = result.scalar() or 0
        return count > 0

    async def add_voter(self, voter_id: str) -> bool:
        """
        Record a voter.

        Returns False when the unique constraint already holds a row for the
        voter (a concurrent duplicate).
        """
        stmt = (
            insert(VotingUser)
            .values(voter_id=voter_id)
            .on_conflict_do_nothing(index_elements=[VotingUser.voter_id])
            .returning(VotingUser.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    # -------------------------------------------------------------------------
    # Telegram message references
    # -------------------------------------------------------------------------

    async def save_message(
        self,
        purpose: MessagePurpose,
        message_id: int,
        chat_id: Optional[str] = None,
    ) -> None:
        """Track a message, replacing any older reference for the purpose."""
        stmt = (
            insert(TelegramMessage)
            .values(purpose=purpose.value, message_id=message_id, chat_id=chat_id)
            .on_conflict_do_update(
                index_elements=[TelegramMessage.purpose],
                set_={"message_id": message_id, "chat_id": chat_id},
            )
        )
        await self.db.execute(stmt)

    async def get_message(self, purpose: MessagePurpose) -> Optional[TelegramMessage]:
        result = await self.db.execute(
            select(TelegramMessage).where(TelegramMessage.purpose == purpose.value)
        )
        return result.scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Round reset
    # -------------------------------------------------------------------------

    async def clear_round(self) -> dict[str, int]:
        """Delete all images, voters and message references."""
        images = await self.db.execute(delete(VotingImage))
        voters = await self.db.execute(delete(VotingUser))
        messages = await self.db.execute(delete(TelegramMessage))
        return {
            "images": self._get_rowcount(images),
            "voters": self._get_rowcount(voters),
            "messages": self._get_rowcount(messages),
        }
