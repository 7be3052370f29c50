"""Error taxonomy for the 2FA subsystem.

Components raise these; ``TwoFactorService`` turns them into plain booleans or
``None`` at its boundary so callers never see which check failed.
"""

from __future__ import annotations


class TwoFactorError(Exception):
    """Base class for all 2FA errors."""


class CryptoError(TwoFactorError):
    """Encryption key missing/corrupt, or ciphertext malformed."""


class NotFoundError(TwoFactorError):
    """An operation needed an enrollment record and none exists."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No 2FA enrollment for user {user_id!r}")
        self.user_id = user_id


class ValidationError(TwoFactorError):
    """A submitted code has the wrong length or charset."""
