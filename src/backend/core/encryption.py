"""
Token Encryption at Rest.

Provides AES-256-GCM encryption for the long-lived access tokens kept in
the ``tokens`` table.

Stored format:
    base64(nonce).base64(ciphertext).base64(tag)

Key sources (TOKENS_CRYPTO_KEY), in order:
1. base64-encoded 32-byte key (preferred)
2. hex-encoded 32-byte key
3. any other string, stretched with scrypt (weaker, logged as a warning)
"""

import base64
import binascii
import secrets
from functools import lru_cache
from typing import Optional

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from core.config import settings
from core.exceptions import ConfigurationError, CredentialError

logger = structlog.get_logger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32

# scrypt parameters for the passphrase fallback
SCRYPT_SALT = b"tokens_salt"
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1


def _decode_key_material(raw: str) -> bytes:
    """Turn TOKENS_CRYPTO_KEY into a 32-byte key."""
    try:
        key = base64.b64decode(raw, validate=True)
        if len(key) == KEY_SIZE:
            return key
    except (binascii.Error, ValueError):
        pass

    try:
        key = bytes.fromhex(raw)
        if len(key) == KEY_SIZE:
            return key
    except ValueError:
        pass

    logger.warning(
        "token_key_derived_from_passphrase",
        message="TOKENS_CRYPTO_KEY is not a 32-byte base64/hex key; using scrypt. "
        "Configure a random 32-byte key for production.",
    )
    kdf = Scrypt(salt=SCRYPT_SALT, length=KEY_SIZE, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(raw.encode("utf-8"))


class TokenCipher:
    """
    AES-256-GCM cipher for access tokens.

    The GCM tag is kept as a separate segment so that a corrupted tag,
    nonce or ciphertext, or a wrong key, is rejected with CredentialError
    instead of yielding garbage plaintext.
    """

    def __init__(self, encryption_key: Optional[bytes] = None):
        """
        Initialize with encryption key.

        Args:
            encryption_key: 32-byte AES key. If None, loads TOKENS_CRYPTO_KEY.

        Raises:
            ConfigurationError: No key configured or key has the wrong size.
        """
        key = encryption_key if encryption_key is not None else self._load_key()
        if len(key) != KEY_SIZE:
            raise ConfigurationError(
                f"Token encryption key must be {KEY_SIZE} bytes, got {len(key)}"
            )
        self._aesgcm = AESGCM(key)

    @staticmethod
    def _load_key() -> bytes:
        raw = settings.TOKENS_CRYPTO_KEY
        if not raw:
            raise ConfigurationError(
                "TOKENS_CRYPTO_KEY not configured. Provide a 32-byte key (base64 or hex)"
            )
        return _decode_key_material(raw)

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a token.

        Returns:
            ``base64(nonce).base64(ciphertext).base64(tag)``
        """
        if not isinstance(plaintext, str):
            raise CredentialError("encrypt requires a string")

        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]

        return ".".join(
            base64.b64encode(part).decode("ascii") for part in (nonce, ciphertext, tag)
        )

    def decrypt(self, packed: str) -> str:
        """
        Decrypt a token produced by ``encrypt``.

        Raises:
            CredentialError: Malformed input, wrong key or tampered data.
        """
        if not isinstance(packed, str) or packed.count(".") != 2:
            raise CredentialError("Invalid encrypted token format")

        try:
            nonce, ciphertext, tag = (
                base64.b64decode(part, validate=True) for part in packed.split(".")
            )
        except (binascii.Error, ValueError) as e:
            raise CredentialError(f"Invalid encrypted token encoding: {e}") from e

        if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
            raise CredentialError("Invalid encrypted token format")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            logger.error("token_decryption_failed", reason="authentication_failed")
            raise CredentialError(
                "Token authentication failed (wrong key or tampered data)"
            ) from e

        return plaintext.decode("utf-8")


@lru_cache()
def get_token_cipher() -> TokenCipher:
    """Get the TokenCipher built from TOKENS_CRYPTO_KEY."""
    return TokenCipher()


def generate_encryption_key() -> str:
    """
    Generate a new base64-encoded 256-bit encryption key.

    Use this to generate a new key for TOKENS_CRYPTO_KEY.
    """
    key = secrets.token_bytes(KEY_SIZE)
    return base64.b64encode(key).decode("ascii")
