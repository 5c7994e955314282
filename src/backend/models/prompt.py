"""Queue of prompts waiting for the daily post pipeline."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class QueuedPrompt(Base):
    """A prompt consumed oldest-first by the daily post pipeline."""

    __tablename__ = "prompt_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    prompt: Mapped[str] = mapped_column(Text, nullable=False)

    create_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )
