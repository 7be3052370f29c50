"""Two-factor authentication service.

Orchestrates the TOTP engine, backup codes, secret codec and record store for
the external login flow. Per-user states::

    unenrolled -> enabled <-> disabled

``begin_enrollment`` persists nothing; a record only appears once the caller
has confirmed a live code and calls ``enable_two_factor``.
"""

from __future__ import annotations

import logging

from twofa.auth import backup_codes, qr, totp
from twofa.config import Settings, settings as default_settings
from twofa.crypto import SecretCodec
from twofa.errors import CryptoError, TwoFactorError
from twofa.models import EnrollmentRecord, EnrollmentStart, PlainBackupCodeSet, TwoFactorState
from twofa.store import EnrollmentStore

logger = logging.getLogger(__name__)


class TwoFactorService:
    def __init__(
        self,
        store: EnrollmentStore,
        codec: SecretCodec,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._codec = codec
        self._settings = settings or default_settings

    # -- enrollment -----------------------------------------------------------

    def begin_enrollment(self, email: str) -> EnrollmentStart:
        """Generate a secret and its provisioning URI. Nothing is stored."""
        secret = totp.generate_secret()
        uri = totp.provisioning_uri(self._settings.issuer_name, email, secret)
        return EnrollmentStart(secret=secret, provisioning_uri=uri)

    def provisioning_qr(self, enrollment: EnrollmentStart) -> str:
        """PNG data URI of the enrollment QR code."""
        return qr.qr_data_uri(enrollment.provisioning_uri)

    def _new_backup_codes(self) -> tuple[PlainBackupCodeSet, list[str]]:
        codes = backup_codes.generate(self._settings.backup_codes_count)
        return codes, backup_codes.hash_all(codes, rounds=self._settings.bcrypt_rounds)

    def enable_two_factor(self, user_id: str, secret: str) -> PlainBackupCodeSet:
        """Enable 2FA with a confirmed secret and issue a fresh set of backup codes.

        The record is written before the codes are returned; if the store
        raises, the plaintext codes are discarded with it.
        """
        totp.validate_secret(secret)
        codes, hashes = self._new_backup_codes()
        self._store.upsert(
            EnrollmentRecord(
                user_id=user_id,
                encrypted_secret=self._codec.encrypt(secret),
                backup_codes=hashes,
                enabled=True,
            )
        )
        logger.info("2FA enabled for user %s with %d backup codes", user_id, len(codes))
        return codes

    def disable_two_factor(self, user_id: str) -> bool:
        """Stop enforcing 2FA, keeping secret and backup codes. False if never enrolled."""
        existing = self._store.get(user_id)
        if existing is None:
            logger.info("Disable requested for unenrolled user %s", user_id)
            return False
        self._store.set_enabled(user_id, False)
        logger.info("2FA disabled for user %s", user_id)
        return True

    # -- queries --------------------------------------------------------------

    def state(self, user_id: str) -> TwoFactorState:
        record = self._store.get(user_id)
        if record is None:
            return TwoFactorState.UNENROLLED
        return TwoFactorState.ENABLED if record.enabled else TwoFactorState.DISABLED

    def is_enabled(self, user_id: str) -> bool:
        return self.state(user_id) is TwoFactorState.ENABLED

    def remaining_backup_codes_count(self, user_id: str) -> int:
        record = self._store.get(user_id)
        if record is None or not record.enabled:
            return 0
        return record.remaining_backup_codes

    # -- verification ---------------------------------------------------------

    def verify_user_code(self, user_id: str, code: str) -> bool:
        """Check a TOTP or backup code for a user. Always resolves to a plain bool."""
        record = self._store.get(user_id)
        if record is None or not record.enabled:
            return False

        try:
            secret = self._codec.decrypt(record.encrypted_secret)
        except CryptoError as e:
            logger.error("Cannot decrypt 2FA secret for user %s: %s", user_id, e)
            return False

        if totp.verify(secret, code, skew_steps=self._settings.totp_skew_steps):
            return True

        if self._consume_backup_code(record, code):
            return True

        logger.info("2FA verification failed for user %s", user_id)
        return False

    def _consume_backup_code(self, record: EnrollmentRecord, code: str) -> bool:
        user_id = record.user_id
        for _ in range(self._settings.verify_retry_limit):
            matched, remaining = backup_codes.verify_and_consume(record.backup_codes, code)
            if not matched:
                return False
            if self._store.compare_and_set_backup_codes(user_id, record.version, remaining):
                logger.info(
                    "Backup code used for user %s, %d remaining", user_id, len(remaining)
                )
                return True

            logger.warning("Concurrent update of backup codes for user %s, re-checking", user_id)
            fresh = self._store.get(user_id)
            if fresh is None or not fresh.enabled:
                return False
            record = fresh

        logger.warning("Giving up on backup code for user %s after repeated conflicts", user_id)
        return False

    # -- backup code maintenance ----------------------------------------------

    def regenerate_backup_codes(self, user_id: str) -> PlainBackupCodeSet | None:
        """Replace all backup codes for an enabled user. None if not enrolled."""
        record = self._store.get(user_id)
        if record is None or not record.enabled:
            return None

        codes, hashes = self._new_backup_codes()
        for _ in range(self._settings.verify_retry_limit):
            if self._store.compare_and_set_backup_codes(user_id, record.version, hashes):
                logger.info("Regenerated %d backup codes for user %s", len(codes), user_id)
                return codes
            fresh = self._store.get(user_id)
            if fresh is None or not fresh.enabled:
                return None
            record = fresh

        raise TwoFactorError(f"Backup codes for user {user_id} kept changing during regeneration")
