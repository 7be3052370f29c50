"""Enrollment record stores: in-memory and PostgreSQL.

Both drivers key records by ``user_id`` and bump ``version`` on every write,
so backup-code consumption can be done as a compare-and-set.
"""

from __future__ import annotations

import abc
import logging
import threading
from datetime import UTC, datetime
from typing import Any

import psycopg.rows
import psycopg_pool
from psycopg.types.json import Jsonb

from twofa.config import settings
from twofa.errors import NotFoundError
from twofa.models import EnrollmentRecord

logger = logging.getLogger(__name__)


class EnrollmentStore(abc.ABC):
    """Key-value store of ``EnrollmentRecord`` keyed by user id."""

    @abc.abstractmethod
    def upsert(self, record: EnrollmentRecord) -> EnrollmentRecord:
        """Insert, or replace secret/codes/enabled/updated_at keeping created_at."""

    @abc.abstractmethod
    def get(self, user_id: str) -> EnrollmentRecord | None:
        """Return the record for ``user_id`` or None."""

    @abc.abstractmethod
    def set_enabled(self, user_id: str, enabled: bool) -> None:
        """Flip the enabled flag. Raises ``NotFoundError`` if there is no record."""

    @abc.abstractmethod
    def compare_and_set_backup_codes(
        self, user_id: str, expected_version: int, backup_codes: list[str]
    ) -> bool:
        """Replace backup codes only if the record is enabled and still at ``expected_version``.

        Returns False when another writer got there first.
        """


class MemoryEnrollmentStore(EnrollmentStore):
    """Thread-safe in-process store. Hands out copies, never live records."""

    def __init__(self) -> None:
        self._records: dict[str, EnrollmentRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, record: EnrollmentRecord) -> EnrollmentRecord:
        now = datetime.now(UTC)
        with self._lock:
            existing = self._records.get(record.user_id)
            stored = record.model_copy(
                update={
                    "backup_codes": list(record.backup_codes),
                    "created_at": existing.created_at if existing else record.created_at,
                    "updated_at": now,
                    "version": existing.version + 1 if existing else 1,
                }
            )
            self._records[record.user_id] = stored
            return stored.model_copy(deep=True)

    def get(self, user_id: str) -> EnrollmentRecord | None:
        with self._lock:
            record = self._records.get(user_id)
            return record.model_copy(deep=True) if record else None

    def set_enabled(self, user_id: str, enabled: bool) -> None:
        with self._lock:
            record = self._records.get(user_id)
            if record is None:
                raise NotFoundError(user_id)
            self._records[user_id] = record.model_copy(
                update={
                    "enabled": enabled,
                    "updated_at": datetime.now(UTC),
                    "version": record.version + 1,
                }
            )

    def compare_and_set_backup_codes(
        self, user_id: str, expected_version: int, backup_codes: list[str]
    ) -> bool:
        with self._lock:
            record = self._records.get(user_id)
            if record is None or not record.enabled or record.version != expected_version:
                return False
            self._records[user_id] = record.model_copy(
                update={
                    "backup_codes": list(backup_codes),
                    "updated_at": datetime.now(UTC),
                    "version": record.version + 1,
                }
            )
            return True


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------

SCHEMA = """
CREATE TABLE IF NOT EXISTS user_2fa_settings (
    user_id          TEXT PRIMARY KEY,
    encrypted_secret TEXT NOT NULL,
    backup_codes     JSONB NOT NULL DEFAULT '[]'::jsonb,
    enabled          BOOLEAN NOT NULL DEFAULT FALSE,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at       TIMESTAMPTZ NOT NULL DEFAULT now(),
    version          INTEGER NOT NULL DEFAULT 1,
    CONSTRAINT enabled_has_secret CHECK (NOT enabled OR encrypted_secret <> '')
)
"""

_COLUMNS = "user_id, encrypted_secret, backup_codes, enabled, created_at, updated_at, version"


def open_pool(
    conninfo: str | None = None, min_size: int = 1, max_size: int = 10
) -> psycopg_pool.ConnectionPool:
    """Create and open a synchronous connection pool."""
    pool = psycopg_pool.ConnectionPool(
        conninfo=conninfo or settings.database_url,
        min_size=min_size,
        max_size=max_size,
        kwargs={"row_factory": psycopg.rows.dict_row},
        open=False,
    )
    pool.open()
    return pool


def _row_to_record(row: dict[str, Any]) -> EnrollmentRecord:
    return EnrollmentRecord(
        user_id=row["user_id"],
        encrypted_secret=row["encrypted_secret"],
        backup_codes=list(row["backup_codes"] or []),
        enabled=row["enabled"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        version=row["version"],
    )


class PostgresEnrollmentStore(EnrollmentStore):
    """Stores records in ``user_2fa_settings`` through an injected connection pool."""

    def __init__(self, pool: psycopg_pool.ConnectionPool) -> None:
        self._pool = pool

    def init_schema(self) -> None:
        with self._pool.connection() as conn:
            conn.execute(SCHEMA)
        logger.info("user_2fa_settings table ready")

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=psycopg.rows.dict_row) as cur:
                cur.execute(query, params)
                return cur.fetchone()

    def upsert(self, record: EnrollmentRecord) -> EnrollmentRecord:
        row = self._fetch_one(
            f"""INSERT INTO user_2fa_settings
                   (user_id, encrypted_secret, backup_codes, enabled, created_at, updated_at, version)
               VALUES (%s, %s, %s, %s, %s, now(), 1)
               ON CONFLICT (user_id) DO UPDATE SET
                   encrypted_secret = EXCLUDED.encrypted_secret,
                   backup_codes = EXCLUDED.backup_codes,
                   enabled = EXCLUDED.enabled,
                   updated_at = now(),
                   version = user_2fa_settings.version + 1
               RETURNING {_COLUMNS}""",
            (
                record.user_id,
                record.encrypted_secret,
                Jsonb(record.backup_codes),
                record.enabled,
                record.created_at,
            ),
        )
        if row is None:
            raise RuntimeError(f"Upsert for user {record.user_id} returned no row")
        return _row_to_record(row)

    def get(self, user_id: str) -> EnrollmentRecord | None:
        row = self._fetch_one(
            f"SELECT {_COLUMNS} FROM user_2fa_settings WHERE user_id = %s",
            (user_id,),
        )
        return _row_to_record(row) if row else None

    def set_enabled(self, user_id: str, enabled: bool) -> None:
        row = self._fetch_one(
            """UPDATE user_2fa_settings
               SET enabled = %s, updated_at = now(), version = version + 1
               WHERE user_id = %s
               RETURNING user_id""",
            (enabled, user_id),
        )
        if row is None:
            raise NotFoundError(user_id)

    def compare_and_set_backup_codes(
        self, user_id: str, expected_version: int, backup_codes: list[str]
    ) -> bool:
        row = self._fetch_one(
            """UPDATE user_2fa_settings
               SET backup_codes = %s, updated_at = now(), version = version + 1
               WHERE user_id = %s AND version = %s AND enabled
               RETURNING version""",
            (Jsonb(backup_codes), user_id, expected_version),
        )
        return row is not None
