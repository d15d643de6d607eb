"""Encryption at rest for Bill.com credentials."""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

from billing_engine.exceptions import ValidationError

logger = logging.getLogger(__name__)


class CredentialCipher:
    """Symmetric encryption of credential fields with an app-wide Fernet key."""

    def __init__(self, key: str | None):
        if not key:
            raise ValidationError(
                "ENCRYPTION_KEY is not configured; Bill.com credentials cannot be stored or read"
            )
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as e:
            raise ValidationError(f"ENCRYPTION_KEY is not a valid Fernet key: {e}") from e

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as e:
            logger.error("Stored Bill.com credential could not be decrypted")
            raise ValidationError(
                "Stored Bill.com credentials cannot be decrypted with the configured key"
            ) from e

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()
