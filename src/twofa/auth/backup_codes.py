"""Single-use backup codes for account recovery.

Codes are 8 characters from ``0-9A-Z``. Only bcrypt hashes are stored; the
plaintext set exists once, as the return value of ``generate``.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Iterable

import bcrypt

from twofa.errors import ValidationError
from twofa.models import PlainBackupCodeSet

logger = logging.getLogger(__name__)

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
CODE_LENGTH = 8
DEFAULT_COUNT = 10
DEFAULT_ROUNDS = 12


def generate(count: int = DEFAULT_COUNT) -> PlainBackupCodeSet:
    """
    Generate backup codes for account recovery.

    Each character is drawn independently from a CSPRNG. Duplicates within a
    set are not filtered out (36^8 possible codes).

    Args:
        count: Number of backup codes to generate.

    Returns:
        The plaintext codes, for one-time display.
    """
    if count < 1:
        raise ValueError("count must be at least 1")
    codes = tuple(
        "".join(secrets.choice(ALPHABET) for _ in range(CODE_LENGTH))
        for _ in range(count)
    )
    return PlainBackupCodeSet(codes)


def normalize_code(code: str) -> str:
    """
    Normalize a submitted backup code.

    Removes whitespace and dashes and uppercases, so "abcd-1234" matches
    "ABCD1234".

    Raises:
        ValidationError: If the result is not 8 characters from the alphabet.
    """
    normalized = "".join(code.split()).replace("-", "").upper() if code else ""
    if len(normalized) != CODE_LENGTH or any(c not in ALPHABET for c in normalized):
        raise ValidationError("Backup code must be 8 letters or digits")
    return normalized


def hash_code(code: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash one backup code with bcrypt and a fresh salt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(normalize_code(code).encode("utf-8"), salt).decode("utf-8")


def hash_all(codes: Iterable[str], rounds: int = DEFAULT_ROUNDS) -> list[str]:
    """Hash each code independently for storage."""
    return [hash_code(code, rounds) for code in codes]


def _matches(code: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(code.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Unparseable stored hash; it can never match.
        logger.warning("Skipping malformed backup code hash")
        return False


def verify_and_consume(stored_hashes: list[str], submitted_code: str) -> tuple[bool, list[str]]:
    """
    Check a submitted code against stored hashes and consume the first match.

    Args:
        stored_hashes: Hashes currently on record. Not modified.
        submitted_code: Code entered by the user.

    Returns:
        ``(True, remaining)`` with the matched hash removed, or
        ``(False, unchanged copy)``.
    """
    remaining = list(stored_hashes)
    try:
        code = normalize_code(submitted_code)
    except ValidationError:
        return False, remaining

    for i, hashed in enumerate(remaining):
        if _matches(code, hashed):
            del remaining[i]
            return True, remaining
    return False, remaining
