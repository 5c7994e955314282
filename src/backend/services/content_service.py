"""
Content Generation Service

Prompt handling for the daily post: default prompt, refinement and
caption writing through a text model, plus the image generator seam.
"""

from typing import Optional, Protocol

import structlog

from core.config import PageConfig
from core.exceptions import ContentGenerationError

logger = structlog.get_logger(__name__)


class TextGenerator(Protocol):
    async def generate_text(self, instruction: str) -> str: ...


class ImageGenerator(Protocol):
    """Anything that turns a prompt into image bytes or a public image URL."""

    async def generate_image(self, prompt: str) -> bytes | str: ...


class PromptRefiner:
    """Default prompt, refinement and captions with the page's instructions."""

    def __init__(self, llm: TextGenerator, page: PageConfig):
        self.llm = llm
        self.page = page

    async def _ask(self, instruction: str, step: str) -> str:
        try:
            text = (await self.llm.generate_text(instruction) or "").strip()
        except ContentGenerationError as e:
            raise e.with_context(step=step)
        if not text:
            raise ContentGenerationError("Empty response from text model", context={"step": step})
        return text

    async def default_prompt(self) -> str:
        """Ask the model for a fresh prompt when the queue is empty."""
        return await self._ask(self.page.prompt_default_instruction, "default_prompt")

    async def refine_text(self, prompt: str) -> str:
        """
        Make a prompt more descriptive.

        Raises:
            ContentGenerationError: Empty input or empty model answer.
        """
        if not prompt or not prompt.strip():
            raise ContentGenerationError("Cannot refine an empty prompt", context={"step": "refine_prompt"})
        instruction = f"{self.page.prompt_refine_instruction} {prompt.strip()}"
        refined = await self._ask(instruction, "refine_prompt")
        logger.info("prompt_refined", original_length=len(prompt), refined_length=len(refined))
        return refined

    async def generate_caption(self, prompt: str, max_hashtags: Optional[int] = None) -> str:
        """Instagram caption for an image generated from ``prompt``."""
        if not prompt or not prompt.strip():
            raise ContentGenerationError("Cannot caption an empty prompt", context={"step": "caption"})

        hashtags = max_hashtags if max_hashtags is not None else self.page.caption_max_hashtags
        template = self.page.prompt_caption_instruction
        if "{prompt}" in template:
            instruction = template.replace("{prompt}", prompt)
        else:
            instruction = f"{template} {prompt}"
        instruction = instruction.replace("{N}", str(hashtags))
        return await self._ask(instruction, "caption")
