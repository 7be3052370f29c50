"""Shared fixtures: fast bcrypt, ephemeral keys, in-memory store."""

from __future__ import annotations

import pytest

from twofa.config import Settings
from twofa.crypto import SecretCodec, generate_key
from twofa.service import TwoFactorService
from twofa.store import MemoryEnrollmentStore


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        twofa_encryption_key="",
        key_file=tmp_path / "config" / "encryption_key.yaml",
        bcrypt_rounds=4,
    )


@pytest.fixture
def codec():
    return SecretCodec(generate_key())


@pytest.fixture
def store():
    return MemoryEnrollmentStore()


@pytest.fixture
def service(store, codec, settings):
    return TwoFactorService(store, codec, settings)
