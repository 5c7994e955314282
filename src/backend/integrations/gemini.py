"""
Google Gemini / Imagen client (google-genai SDK).
"""

from typing import Optional

import structlog
from google import genai
from google.genai import types

from core.exceptions import ConfigurationError, ContentGenerationError

logger = structlog.get_logger(__name__)


class GeminiClient:
    """Text generation with Gemini and image generation with Imagen."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        text_model: str = "gemini-2.0-flash",
        image_model: str = "imagen-3.0-generate-002",
        aspect_ratio: str = "1:1",
        client: Optional[genai.Client] = None,
    ):
        if client is None:
            if not api_key:
                raise ConfigurationError("GOOGLE_API_KEY not configured")
            client = genai.Client(api_key=api_key)
        self.client = client
        self.text_model = text_model
        self.image_model = image_model
        self.aspect_ratio = aspect_ratio

    async def generate_text(self, instruction: str) -> str:
        """
        Run one instruction and return the trimmed answer.

        Raises:
            ContentGenerationError: SDK failure or empty answer.
        """
        try:
            response = await self.client.aio.models.generate_content(
                model=self.text_model,
                contents=instruction,
            )
        except Exception as e:
            raise ContentGenerationError(
                f"Gemini request failed: {e}", context={"step": "generate_text"}
            ) from e

        text = (response.text or "").strip()
        if not text:
            raise ContentGenerationError("Empty response from Gemini", context={"step": "generate_text"})
        return text

    async def generate_image(self, prompt: str) -> bytes:
        """
        Generate one image and return its PNG bytes.

        Raises:
            ContentGenerationError: SDK failure or no image returned.
        """
        try:
            response = await self.client.aio.models.generate_images(
                model=self.image_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio=self.aspect_ratio,
                    output_mime_type="image/png",
                ),
            )
        except Exception as e:
            raise ContentGenerationError(
                f"Imagen request failed: {e}", context={"step": "generate_image"}
            ) from e

        images = response.generated_images or []
        if not images or images[0].image is None or not images[0].image.image_bytes:
            raise ContentGenerationError(
                "Imagen returned no image", context={"step": "generate_image"}
            )

        logger.info("image_generated", model=self.image_model)
        return images[0].image.image_bytes
