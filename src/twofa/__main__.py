"""CLI entry point for twofa."""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console

from twofa.config import load_or_create_encryption_key, settings
from twofa.crypto import SecretCodec
from twofa.service import TwoFactorService
from twofa.store import PostgresEnrollmentStore, open_pool

console = Console()


def _build_store() -> PostgresEnrollmentStore:
    return PostgresEnrollmentStore(open_pool(min_size=1, max_size=2))


def _build_service() -> TwoFactorService:
    codec = SecretCodec(load_or_create_encryption_key(settings))
    return TwoFactorService(_build_store(), codec, settings)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
def main(verbose: bool) -> None:
    """twofa: TOTP two-factor authentication administration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


@main.command()
def status() -> None:
    """Show configuration."""
    console.print("[bold]twofa status[/bold]")
    console.print(f"  Database: {settings.database_url.split('@')[-1]}")
    console.print(f"  Issuer: {settings.issuer_name}")
    console.print(f"  Key source: {'environment' if settings.twofa_encryption_key else settings.key_file}")
    console.print(f"  Backup codes per set: {settings.backup_codes_count}")
    console.print(f"  TOTP skew: +-{settings.totp_skew_steps} steps")


@main.command()
def keygen() -> None:
    """Load the encryption key, creating and saving it if none exists."""
    load_or_create_encryption_key(settings)
    console.print("[green]Encryption key ready.[/green] Back it up: without it no enrollment can be decrypted.")


@main.command("init-db")
def init_db() -> None:
    """Create the enrollment table."""
    _build_store().init_schema()
    console.print("[green]Schema ready[/green]")


@main.command()
@click.argument("user_id")
@click.argument("email")
def enroll(user_id: str, email: str) -> None:
    """Enroll USER_ID: show QR, confirm a live code, print backup codes."""
    from twofa.auth import qr, totp

    svc = _build_service()
    start = svc.begin_enrollment(email)
    console.print(qr.qr_ascii(start.provisioning_uri), highlight=False)
    console.print(f"URI: {start.provisioning_uri}", highlight=False)

    code = click.prompt("Code from authenticator app")
    if not totp.verify(start.secret, code, skew_steps=settings.totp_skew_steps):
        console.print("[red]Code did not match; nothing was saved.[/red]")
        sys.exit(1)

    codes = svc.enable_two_factor(user_id, start.secret)
    console.print("[green]2FA enabled.[/green]")
    console.print(codes.format_for_display(), highlight=False)


@main.command()
@click.argument("user_id")
@click.argument("code")
def verify(user_id: str, code: str) -> None:
    """Check a TOTP or backup CODE for USER_ID."""
    if _build_service().verify_user_code(user_id, code):
        console.print("[green]Valid[/green]")
    else:
        console.print("[red]Invalid[/red]")
        sys.exit(1)


@main.command()
@click.argument("user_id")
def disable(user_id: str) -> None:
    """Disable 2FA for USER_ID (secret and codes are kept)."""
    if not _build_service().disable_two_factor(user_id):
        console.print(f"[red]{user_id} is not enrolled[/red]")
        sys.exit(1)
    console.print(f"2FA disabled for {user_id}")


@main.command()
@click.argument("user_id")
def regenerate(user_id: str) -> None:
    """Issue a new set of backup codes for USER_ID."""
    codes = _build_service().regenerate_backup_codes(user_id)
    if codes is None:
        console.print(f"[red]{user_id} is not enrolled[/red]")
        sys.exit(1)
    console.print(codes.format_for_display(), highlight=False)


@main.command()
@click.argument("user_id")
def remaining(user_id: str) -> None:
    """Show how many backup codes USER_ID has left."""
    svc = _build_service()
    console.print(f"{user_id}: {svc.state(user_id)}, {svc.remaining_backup_codes_count(user_id)} backup codes left")


if __name__ == "__main__":
    main()
