"""
Voting round Pydantic schemas.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class VoteCreate(BaseModel):
    """Schema for casting a vote outside Telegram."""

    voter_id: str = Field(..., min_length=1, max_length=64)
    image_hash: str = Field(..., min_length=1, description="Short hash (or URL) of the image")


class VoteResponse(BaseModel):
    """Response after a vote attempt."""

    success: bool
    status: Literal["accepted", "duplicate", "not_found"]
    message: str
    image_url: Optional[str] = None
    votes: Optional[int] = None


class VotingRunResponse(BaseModel):
    """Result of one voting trigger."""

    ok: bool = True
    action: Literal["voting", "publish"]
    details: dict[str, Any] = Field(default_factory=dict)
