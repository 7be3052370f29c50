"""QR code rendering for otpauth:// provisioning URIs."""

from __future__ import annotations

import base64
import io

import qrcode


def _build(uri: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=5,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)
    return qr


def qr_png(uri: str) -> bytes:
    """Render the URI as PNG image bytes."""
    img = _build(uri).make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def qr_data_uri(uri: str) -> str:
    """Render the URI as a base64 PNG data URI, ready for an <img> tag."""
    b64 = base64.b64encode(qr_png(uri)).decode("utf-8")
    return f"data:image/png;base64,{b64}"


def qr_ascii(uri: str) -> str:
    """Render the URI as text for terminals."""
    out = io.StringIO()
    _build(uri).print_ascii(out=out, invert=True)
    return out.getvalue()
