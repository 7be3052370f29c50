"""TOTP (Time-based One-Time Password) engine for 2FA.

Uses pyotp (RFC 6238: HMAC-SHA1, 6 digits, 30-second steps) to generate
secrets, build provisioning URIs and check submitted codes.
"""

from __future__ import annotations

import base64
import binascii
import datetime
import logging

import pyotp

from twofa.errors import ValidationError

logger = logging.getLogger(__name__)

DIGITS = 6
INTERVAL = 30


def generate_secret() -> str:
    """Generate a new TOTP secret (base32-encoded, 32 chars = 160 bits)."""
    return pyotp.random_base32()


def validate_secret(secret: str) -> str:
    """Check that a secret is non-empty base32, as authenticator apps expect."""
    if not secret:
        raise ValidationError("TOTP secret is empty")
    padded = secret + "=" * (-len(secret) % 8)
    try:
        base64.b32decode(padded, casefold=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("TOTP secret is not valid base32") from e
    return secret


def provisioning_uri(issuer: str, account_label: str, secret: str) -> str:
    """Get the otpauth:// URI for QR code enrollment."""
    return pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL).provisioning_uri(
        name=account_label, issuer_name=issuer
    )


def normalize_code(code: str) -> str:
    """Strip whitespace from a submitted code and check it is 6 digits."""
    cleaned = "".join(code.split()) if code else ""
    if len(cleaned) != DIGITS or not cleaned.isascii() or not cleaned.isdigit():
        raise ValidationError("TOTP code must be exactly 6 digits")
    return cleaned


def current_code(secret: str, for_time: datetime.datetime | int | None = None) -> str:
    """Get the TOTP code for a secret at ``for_time`` (default: now)."""
    totp = pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL)
    if for_time is None:
        return totp.now()
    return totp.at(for_time)


def verify(
    secret: str,
    submitted_code: str,
    skew_steps: int = 1,
    for_time: datetime.datetime | int | None = None,
) -> bool:
    """Verify a TOTP code against a secret, allowing +-``skew_steps`` windows.

    Malformed codes are rejected before any HMAC is computed.
    """
    if not secret:
        return False
    try:
        code = normalize_code(submitted_code)
    except ValidationError:
        logger.debug("Rejected malformed TOTP code")
        return False
    totp = pyotp.TOTP(secret, digits=DIGITS, interval=INTERVAL)
    try:
        return totp.verify(code, for_time=for_time, valid_window=skew_steps)
    except binascii.Error:
        logger.warning("TOTP secret is not valid base32; rejecting code")
        return False
