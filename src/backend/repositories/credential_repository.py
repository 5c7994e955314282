"""
Credential repository for the ``tokens`` table.

Stores ciphertext only; encryption happens in services.credential_store.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from models.credential import StoredToken, TokenType


class CredentialRepository:
    """Repository for encrypted token rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_type(self, token_type: TokenType) -> Optional[StoredToken]:
        """Get the active token row for a token type."""
        result = await self.db.execute(
            select(StoredToken).where(StoredToken.token_type == token_type.value).limit(1)
        )
        return result.scalar_one_or_none()

    async def upsert(self, token_type: TokenType, encrypted_token: str) -> StoredToken:
        """Insert or replace the token for a type and reset its create_date."""
        stmt = (
            insert(StoredToken)
            .values(token_type=token_type.value, token=encrypted_token)
            .on_conflict_do_update(
                index_elements=[StoredToken.token_type],
                set_={"token": encrypted_token, "create_date": func.now()},
            )
            .returning(StoredToken)
        )
        result = await self.db.execute(stmt)
        row = result.scalar_one()
        await self.db.commit()
        return row
