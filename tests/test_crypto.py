"""Tests for AES-256-GCM secret encryption."""

from __future__ import annotations

import base64

import pytest

from twofa.crypto import SecretCodec, generate_key
from twofa.errors import CryptoError


def test_encrypt_decrypt(codec):
    plaintext = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"
    token = codec.encrypt(plaintext)
    assert token != plaintext
    assert plaintext not in token
    assert codec.decrypt(token) == plaintext


def test_encrypt_produces_different_ciphertexts(codec):
    # Same plaintext should produce different ciphertexts (random nonce)
    t1 = codec.encrypt("test")
    t2 = codec.encrypt("test")
    assert t1 != t2
    assert base64.b64decode(t1)[:12] != base64.b64decode(t2)[:12]


def test_missing_key_raises():
    with pytest.raises(CryptoError, match="not set"):
        SecretCodec(b"")


def test_short_key_raises():
    with pytest.raises(CryptoError, match="32 bytes"):
        SecretCodec(b"x" * 16)


def test_wrong_key_fails_authentication(codec):
    token = codec.encrypt("secret")
    with pytest.raises(CryptoError, match="authentication"):
        SecretCodec(generate_key()).decrypt(token)


def test_tampered_ciphertext(codec):
    raw = bytearray(base64.b64decode(codec.encrypt("secret")))
    raw[-1] ^= 0x01
    with pytest.raises(CryptoError):
        codec.decrypt(base64.b64encode(bytes(raw)).decode())


def test_truncated_ciphertext(codec):
    short = base64.b64encode(b"\x00" * 20).decode()
    with pytest.raises(CryptoError, match="too short"):
        codec.decrypt(short)


def test_not_base64(codec):
    with pytest.raises(CryptoError, match="base64"):
        codec.decrypt("@@@not-base64@@@")
