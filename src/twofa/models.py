"""Pydantic models for enrollment state flowing between the 2FA components."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import NamedTuple

from pydantic import BaseModel, Field, model_validator


class TwoFactorState(StrEnum):
    UNENROLLED = "unenrolled"
    ENABLED = "enabled"
    DISABLED = "disabled"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EnrollmentRecord(BaseModel):
    """Per-user 2FA enrollment, as persisted by an ``EnrollmentStore``."""

    user_id: str
    encrypted_secret: str
    backup_codes: list[str] = Field(default_factory=list)
    enabled: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 0

    @model_validator(mode="after")
    def _enabled_needs_secret(self) -> EnrollmentRecord:
        if self.enabled and not self.encrypted_secret:
            raise ValueError("An enabled enrollment must carry an encrypted secret")
        return self

    @property
    def remaining_backup_codes(self) -> int:
        return len(self.backup_codes)

    def __repr__(self) -> str:
        # Keep ciphertext and hashes out of logs and tracebacks.
        return (
            f"EnrollmentRecord(user_id={self.user_id!r}, enabled={self.enabled}, "
            f"backup_codes={len(self.backup_codes)}, version={self.version})"
        )

    __str__ = __repr__


@dataclass(frozen=True)
class PlainBackupCodeSet:
    """Plaintext backup codes, handed to the caller once and never stored."""

    codes: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.codes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.codes)

    def __getitem__(self, index: int) -> str:
        return self.codes[index]

    def __repr__(self) -> str:
        return f"PlainBackupCodeSet(<{len(self.codes)} codes>)"

    def format_for_display(self, title: str = "Backup Codes") -> str:
        """Format the codes as a numbered block for one-time display or download."""
        lines = [title, "=" * 30, ""]
        lines.append("Store these codes in a safe place.")
        lines.append("Each code can only be used once.")
        lines.append("")
        for i, code in enumerate(self.codes, 1):
            lines.append(f"{i:2}. {code}")
        lines.append("")
        lines.append(f"Generated: {_utcnow().isoformat()}")
        return "\n".join(lines)


class EnrollmentStart(NamedTuple):
    """Result of beginning enrollment; nothing is persisted yet."""

    secret: str
    provisioning_uri: str
