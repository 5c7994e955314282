"""Repository modules for database access."""

from repositories.credential_repository import CredentialRepository
from repositories.prompt_repository import PromptRepository
from repositories.voting_repository import VotingRepository

__all__ = [
    "CredentialRepository",
    "PromptRepository",
    "VotingRepository",
]
