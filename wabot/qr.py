"""
QR Code Display
===============

Terminal rendering of the pairing QR code.
"""

import io
import sys
from typing import Optional, TextIO

import qrcode


def _build(data: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(border=1)
    qr.add_data(data)
    qr.make(fit=True)
    return qr


def render_qr(data: str) -> str:
    """Return the QR code for ``data`` as ASCII art."""
    buffer = io.StringIO()
    _build(data).print_ascii(out=buffer, invert=True)
    return buffer.getvalue()


def print_qr(data: str, out: Optional[TextIO] = None):
    """Print the QR code for ``data`` so it can be scanned from WhatsApp."""
    out = out or sys.stdout
    out.write(render_qr(data))
    out.flush()
