"""Database models module."""

from models.credential import StoredToken, TokenType
from models.prompt import QueuedPrompt
from models.voting import MessagePurpose, TelegramMessage, VotingImage, VotingUser

__all__ = [
    "StoredToken",
    "TokenType",
    "QueuedPrompt",
    "MessagePurpose",
    "TelegramMessage",
    "VotingImage",
    "VotingUser",
]
