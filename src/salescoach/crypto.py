"""
Encryption of user-supplied provider API keys.

Keys are sealed with AES-256-GCM under a key derived (HKDF-SHA256) from
the configured secret. Stored form is ``v1:<urlsafe-b64(nonce || ct)>``.
"""

import base64
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from salescoach.exceptions import ApiKeyDecryptionError

TOKEN_PREFIX = "v1:"
NONCE_SIZE = 12
_HKDF_INFO = b"salescoach-api-keys"


def derive_key(secret: str) -> bytes:
    """Derive a 256-bit AES key from the configured secret."""
    if not secret:
        raise ValueError("API key encryption secret is not configured")
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=_HKDF_INFO,
    ).derive(secret.encode("utf-8"))


class ApiKeyCipher:
    """Authenticated encryption for stored API keys."""

    def __init__(self, secret: str):
        self._aead = AESGCM(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return TOKEN_PREFIX + base64.urlsafe_b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, token: str) -> str:
        """
        Open a stored token.

        Raises:
            ApiKeyDecryptionError: Unknown format, tampering, or wrong secret
        """
        if not token.startswith(TOKEN_PREFIX):
            raise ApiKeyDecryptionError("Unsupported API key token format")
        try:
            raw = base64.urlsafe_b64decode(token[len(TOKEN_PREFIX):].encode("ascii"))
        except ValueError as e:
            raise ApiKeyDecryptionError("API key token is not valid base64") from e
        if len(raw) <= NONCE_SIZE:
            raise ApiKeyDecryptionError("API key token is truncated")

        try:
            plaintext = self._aead.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None)
        except InvalidTag as e:
            raise ApiKeyDecryptionError("API key token failed authentication") from e
        return plaintext.decode("utf-8")


def hash_key(key: str) -> str:
    """SHA-256 hex digest of a plaintext key."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def mask_api_key(key: str) -> str:
    """Show the first and last four characters: ``sk-a****wxyz``."""
    if len(key) <= 8:
        return key
    return f"{key[:4]}{'*' * (len(key) - 8)}{key[-4:]}"
