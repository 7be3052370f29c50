"""Tests for the command-line interface."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from twofa import __main__ as cli
from twofa.auth import totp


@pytest.fixture
def runner(monkeypatch, service):
    monkeypatch.setattr(cli, "_build_service", lambda: service)
    return CliRunner()


def test_status(runner):
    result = runner.invoke(cli.main, ["status"])
    assert result.exit_code == 0
    assert "Issuer" in result.output


def test_enroll_and_verify(runner, service, monkeypatch):
    secret = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"
    monkeypatch.setattr(totp, "generate_secret", lambda: secret)

    result = runner.invoke(cli.main, ["enroll", "u1", "a@b.com"], input=totp.current_code(secret) + "\n")
    assert result.exit_code == 0, result.output
    assert "2FA enabled" in result.output
    assert service.remaining_backup_codes_count("u1") == 10

    code = totp.current_code(secret)
    result = runner.invoke(cli.main, ["verify", "u1", code])
    assert result.exit_code == 0
    assert "Valid" in result.output


def test_enroll_wrong_code_saves_nothing(runner, service):
    result = runner.invoke(cli.main, ["enroll", "u1", "a@b.com"], input="12345x\n")
    assert result.exit_code == 1
    assert "nothing was saved" in result.output
    assert service.state("u1") == "unenrolled"


def test_verify_invalid(runner):
    result = runner.invoke(cli.main, ["verify", "ghost", "123456"])
    assert result.exit_code == 1
    assert "Invalid" in result.output


def test_regenerate_and_remaining(runner, service):
    service.enable_two_factor("u1", totp.generate_secret())
    result = runner.invoke(cli.main, ["regenerate", "u1"])
    assert result.exit_code == 0
    assert "10. " in result.output

    result = runner.invoke(cli.main, ["remaining", "u1"])
    assert "enabled, 10 backup codes left" in result.output


def test_regenerate_unenrolled(runner):
    result = runner.invoke(cli.main, ["regenerate", "ghost"])
    assert result.exit_code == 1
    assert "not enrolled" in result.output


def test_disable(runner, service):
    service.enable_two_factor("u1", totp.generate_secret())
    assert runner.invoke(cli.main, ["disable", "u1"]).exit_code == 0
    assert not service.is_enabled("u1")
    assert runner.invoke(cli.main, ["disable", "ghost"]).exit_code == 1


def test_init_db(monkeypatch):
    store = MagicMock()
    monkeypatch.setattr(cli, "_build_store", lambda: store)
    result = CliRunner().invoke(cli.main, ["init-db"])
    assert result.exit_code == 0
    store.init_schema.assert_called_once()
