"""twofa: TOTP two-factor authentication with backup codes and encrypted secrets."""

__version__ = "0.1.0"
