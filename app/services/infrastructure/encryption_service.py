"""
Encryption for provider tokens at rest.
Uses Fernet symmetric encryption; the PostgreSQL repository stores the
ciphertext in BYTEA columns.
"""

from cryptography.fernet import Fernet, InvalidToken

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class EncryptionError(Exception):
    """Custom exception for encryption/decryption errors."""

    pass


class TokenCipher:
    """
    Encrypts and decrypts provider tokens with one Fernet key.

    Args:
        key: Base64 Fernet key; defaults to settings.ENCRYPTION_KEY

    Raises:
        EncryptionError: If no key is configured or the key is invalid
    """

    def __init__(self, key: str | None = None):
        key = key or settings.ENCRYPTION_KEY
        if not key:
            raise EncryptionError("ENCRYPTION_KEY not configured in environment")
        try:
            self._fernet = Fernet(key.encode("utf-8"))
        except (ValueError, TypeError) as e:
            logger.error("Failed to initialize Fernet cipher", error=str(e))
            raise EncryptionError(f"Invalid encryption key: {e}") from e

    def encrypt(self, token: str) -> bytes:
        if not token:
            raise EncryptionError("Token must be a non-empty string")
        return self._fernet.encrypt(token.encode("utf-8"))

    def decrypt(self, encrypted: bytes) -> str:
        if not encrypted:
            raise EncryptionError("Encrypted token must be non-empty bytes")
        try:
            return self._fernet.decrypt(bytes(encrypted)).decode("utf-8")
        except InvalidToken as e:
            logger.error("Token decryption failed - invalid token or key mismatch")
            raise EncryptionError("Invalid or corrupted token") from e

    def encrypt_optional(self, token: str | None) -> bytes | None:
        """Encrypt a nullable column value; None and "" stay None."""
        return self.encrypt(token) if token else None

    def decrypt_optional(self, encrypted: bytes | None) -> str | None:
        return self.decrypt(encrypted) if encrypted else None


def generate_new_key() -> str:
    """
    Generate a new Fernet encryption key.

    Store the result in ENCRYPTION_KEY.
    """
    return Fernet.generate_key().decode("utf-8")
