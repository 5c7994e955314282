"""
Credential Store

Encrypted-at-rest persistence of long-lived access tokens. Plaintext
tokens only exist in memory: every write goes through TokenCipher.encrypt
and every read through TokenCipher.decrypt.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.encryption import TokenCipher, get_token_cipher
from core.exceptions import CredentialNotFoundError
from models.credential import TokenType
from repositories.credential_repository import CredentialRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Credential:
    """A decrypted token and the time it was stored."""

    token_type: TokenType
    token: str
    created_at: datetime

    def __repr__(self) -> str:
        return f"Credential(type={self.token_type.value}, created_at={self.created_at.isoformat()})"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CredentialStore:
    """Read and write encrypted tokens."""

    def __init__(self, db: AsyncSession, cipher: TokenCipher | None = None):
        self.repo = CredentialRepository(db)
        self._cipher = cipher

    @property
    def cipher(self) -> TokenCipher:
        # Resolved lazily so a missing key fails at use time
        if self._cipher is None:
            self._cipher = get_token_cipher()
        return self._cipher

    async def get(self, token_type: TokenType) -> Credential:
        """
        Load and decrypt the token for a type.

        Raises:
            CredentialNotFoundError: No row for the token type.
            CredentialError: The stored value cannot be decrypted.
        """
        row = await self.repo.get_by_type(token_type)
        if row is None:
            raise CredentialNotFoundError(
                f"No {token_type.value} token stored",
                context={"token_type": token_type.value},
            )

        token = self.cipher.decrypt(row.token)
        return Credential(token_type=token_type, token=token, created_at=_as_utc(row.create_date))

    async def set(self, token_type: TokenType, token: str) -> Credential:
        """Encrypt and store a token, resetting its creation time."""
        encrypted = self.cipher.encrypt(token)
        row = await self.repo.upsert(token_type, encrypted)

        logger.info("credential_stored", token_type=token_type.value)
        created_at = row.create_date or datetime.now(timezone.utc)
        return Credential(token_type=token_type, token=token, created_at=_as_utc(created_at))
