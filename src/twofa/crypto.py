"""AES-256-GCM encryption for TOTP shared secrets at rest."""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from twofa.config import KEY_SIZE
from twofa.errors import CryptoError

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM
_TAG_SIZE = 16


def generate_key() -> bytes:
    """Return a fresh random 256-bit key."""
    return os.urandom(KEY_SIZE)


class SecretCodec:
    """Encrypts secrets as base64(nonce + ciphertext) under one injected key."""

    def __init__(self, key: bytes) -> None:
        if not key:
            raise CryptoError("Encryption key not set")
        if len(key) != KEY_SIZE:
            raise CryptoError(f"Encryption key must be {KEY_SIZE} bytes")
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string. Returns base64(nonce + ciphertext)."""
        nonce = os.urandom(_NONCE_SIZE)
        ct = self._aead.encrypt(nonce, plaintext.encode(), None)
        return base64.b64encode(nonce + ct).decode()

    def decrypt(self, token: str) -> str:
        """Decrypt a base64(nonce + ciphertext) token back to plaintext."""
        try:
            raw = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError("Ciphertext is not valid base64") from e
        if len(raw) < _NONCE_SIZE + _TAG_SIZE:
            raise CryptoError("Ciphertext too short")
        nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ct, None).decode()
        except InvalidTag as e:
            raise CryptoError("Ciphertext failed authentication (wrong key or tampered)") from e
