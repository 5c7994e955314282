"""
Credential model for encrypted access tokens.

One row per token type. The ``token`` column only ever holds the
``nonce.ciphertext.tag`` string produced by core.encryption.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class TokenType(str, Enum):
    """Kinds of long-lived tokens the service keeps."""

    INSTAGRAM = "INSTAGRAM"
    WHATSAPP = "WHATSAPP"


class StoredToken(Base):
    """Encrypted long-lived token."""

    __tablename__ = "tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    token_type: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)

    # Ciphertext only, never plaintext
    token: Mapped[str] = mapped_column(Text, nullable=False)

    # Drives the refresh policy: reset on every write
    create_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StoredToken(type={self.token_type}, created={self.create_date})>"
