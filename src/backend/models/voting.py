"""
Voting round models.

- VotingImage: one candidate in the pool. ``sent_date`` marks that the
  round containing it has been opened.
- VotingUser: one row per voter per round; the unique voter_id is the only
  de-duplication mechanism.
- TelegramMessage: references to the voting prompt messages so the close
  step can edit or delete exactly those messages.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class MessagePurpose(str, Enum):
    """What a tracked Telegram message is used for."""

    VOTING_KEYBOARD = "voting_keyboard"
    VOTING_MEDIA = "voting_media"


class VotingImage(Base):
    """Candidate image in the voting pool."""

    __tablename__ = "voting_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    image_url: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)

    instagram_post_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    votes: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    # Set when the round is opened
    sent_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    cloudinary_folder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Refined prompt the image was generated from (used for the winner caption)
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<VotingImage(url={self.image_url}, votes={self.votes}, sent={self.sent_date})>"


class VotingUser(Base):
    """A voter who already voted in the current round."""

    __tablename__ = "voting_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    voter_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class TelegramMessage(Base):
    """Tracked Telegram message of the open round."""

    __tablename__ = "telegram_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    message_id: Mapped[int] = mapped_column(Integer, nullable=False)

    purpose: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    chat_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
