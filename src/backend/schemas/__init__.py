"""Schemas module initialization."""

from schemas.pipeline import (
    DailyPostResponse,
    PipelineRunResponse,
    TokenExchangeRequest,
    TokenExchangeResponse,
)
from schemas.telegram import CallbackQuery, TelegramUpdate, WebhookResponse
from schemas.voting import VoteCreate, VoteResponse, VotingRunResponse

__all__ = [
    "VoteCreate",
    "VoteResponse",
    "VotingRunResponse",
    "TelegramUpdate",
    "CallbackQuery",
    "WebhookResponse",
    "DailyPostResponse",
    "PipelineRunResponse",
    "TokenExchangeRequest",
    "TokenExchangeResponse",
]
