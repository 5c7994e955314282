"""
Daily post and token administration schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DailyPostResponse(BaseModel):
    success: bool
    original_prompt: str
    refined_prompt: str
    caption: str
    image_url: str
    cloudinary_folder: str
    media_id: str
    container_id: str
    permalink: Optional[str] = None
    execution_time: str


class PipelineRunResponse(BaseModel):
    ok: bool = True
    results: list[DailyPostResponse]


class TokenExchangeRequest(BaseModel):
    short_lived_token: str = Field(..., min_length=10)


class TokenExchangeResponse(BaseModel):
    success: bool = True
    token_type: str
    expires_in: Optional[int] = None
    created_at: datetime
