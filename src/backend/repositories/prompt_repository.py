"""Prompt queue repository."""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.prompt import QueuedPrompt


class PromptRepository:
    """Repository for the prompt queue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_next(self) -> Optional[QueuedPrompt]:
        """Oldest queued prompt, or None when the queue is empty."""
        result = await self.db.execute(
            select(QueuedPrompt).order_by(QueuedPrompt.create_date.asc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def enqueue(self, prompt: str) -> QueuedPrompt:
        queued = QueuedPrompt(prompt=prompt)
        self.db.add(queued)
        await self.db.flush()
        await self.db.refresh(queued)
        return queued

    async def remove(self, prompt_id: int) -> bool:
        """Delete a consumed prompt."""
        result = await self.db.execute(delete(QueuedPrompt).where(QueuedPrompt.id == prompt_id))
        return (getattr(result, "rowcount", 0) or 0) > 0
