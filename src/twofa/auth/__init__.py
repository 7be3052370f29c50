"""Second-factor primitives: TOTP, backup codes and QR rendering."""
