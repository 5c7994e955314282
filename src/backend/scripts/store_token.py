"""
Encrypt and store an access token, or generate a TOKENS_CRYPTO_KEY.

Usage:
    python scripts/store_token.py --generate-key
    python scripts/store_token.py --type INSTAGRAM --token <long-lived token>
    python scripts/store_token.py --type WHATSAPP              # prompts for the token
"""

import argparse
import asyncio
import getpass

import _common  # noqa: F401

from core.encryption import generate_encryption_key
from db.session import async_session_maker, close_db
from models.credential import TokenType
from services.credential_store import CredentialStore


async def store(token_type: TokenType, token: str) -> None:
    try:
        async with async_session_maker() as db:
            credential = await CredentialStore(db).set(token_type, token)
        print(f"✅ Stored {token_type.value} token (created_at={credential.created_at.isoformat()}).")
    finally:
        await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--generate-key", action="store_true", help="print a new base64 32-byte key")
    parser.add_argument(
        "--type",
        choices=[t.value for t in TokenType],
        default=TokenType.INSTAGRAM.value,
    )
    parser.add_argument("--token", help="plaintext token (prompted when omitted)")
    args = parser.parse_args()

    if args.generate_key:
        print(generate_encryption_key())
        return

    token = args.token or getpass.getpass("Token: ")
    if not token:
        parser.error("a token is required")

    asyncio.run(store(TokenType(args.type), token))


if __name__ == "__main__":
    main()
