"""Tests for backup code generation, hashing and consumption."""

from __future__ import annotations

import pytest

from twofa.auth import backup_codes
from twofa.errors import ValidationError
from twofa.models import PlainBackupCodeSet

ROUNDS = 4


def test_generate_ten_codes():
    codes = backup_codes.generate(10)
    assert isinstance(codes, PlainBackupCodeSet)
    assert len(codes) == 10
    for code in codes:
        assert len(code) == 8
        assert all(c in backup_codes.ALPHABET for c in code)


def test_generate_custom_count():
    assert len(backup_codes.generate(3)) == 3
    with pytest.raises(ValueError):
        backup_codes.generate(0)


def test_hash_all_is_salted():
    hashes = backup_codes.hash_all(["AAAA1111", "AAAA1111"], rounds=ROUNDS)
    assert len(hashes) == 2
    assert hashes[0] != hashes[1]
    assert all(h.startswith("$2") for h in hashes)
    assert "AAAA1111" not in hashes[0]


def test_each_code_consumes_exactly_once():
    codes = backup_codes.generate(5)
    stored = backup_codes.hash_all(codes, rounds=ROUNDS)

    for i, code in enumerate(codes):
        ok, stored = backup_codes.verify_and_consume(stored, code)
        assert ok
        assert len(stored) == 4 - i
        ok, after = backup_codes.verify_and_consume(stored, code)
        assert not ok
        assert after == stored

    assert stored == []


def test_input_list_not_mutated():
    stored = backup_codes.hash_all(["ABCD1234"], rounds=ROUNDS)
    snapshot = list(stored)
    ok, remaining = backup_codes.verify_and_consume(stored, "ABCD1234")
    assert ok
    assert remaining == []
    assert stored == snapshot


def test_normalized_input_matches():
    stored = backup_codes.hash_all(["ABCD1234"], rounds=ROUNDS)
    ok, _ = backup_codes.verify_and_consume(stored, " abcd-1234 ")
    assert ok


def test_first_match_removed_keeps_order():
    stored = backup_codes.hash_all(["AAAA0000", "BBBB1111", "CCCC2222"], rounds=ROUNDS)
    ok, remaining = backup_codes.verify_and_consume(stored, "BBBB1111")
    assert ok
    assert remaining == [stored[0], stored[2]]


@pytest.mark.parametrize("bad", ["", "ABC", "ABCDEFGHI", "ABCD_123", "ÄBCD1234"])
def test_malformed_code_fails_fast(bad):
    stored = backup_codes.hash_all(["ABCD1234"], rounds=ROUNDS)
    ok, remaining = backup_codes.verify_and_consume(stored, bad)
    assert not ok
    assert remaining == stored
    with pytest.raises(ValidationError):
        backup_codes.normalize_code(bad)


def test_garbage_hash_skipped():
    stored = ["not-a-bcrypt-hash"] + backup_codes.hash_all(["ABCD1234"], rounds=ROUNDS)
    ok, remaining = backup_codes.verify_and_consume(stored, "ABCD1234")
    assert ok
    assert remaining == ["not-a-bcrypt-hash"]
