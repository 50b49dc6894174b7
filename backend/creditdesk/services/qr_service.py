# Overview: QR code generation for receipt verification links.

"""
Receipt QR codes.

Each receipt carries a QR code encoding its public verification URL. The
ledger depends only on the QRGenerator protocol, so tests can plug in a
generator that always fails or never renders an image.
"""

from __future__ import annotations

import base64
from io import BytesIO
from typing import Protocol

import qrcode


class QRGenerator(Protocol):
    def generate(self, receipt_number: str) -> str:
        """Return the QR code for a receipt as a data URI."""
        ...


class QRCodeGenerator:
    """Renders verification QR codes as PNG images."""

    def __init__(self, url_template: str, box_size: int = 10, border: int = 2):
        if "{receipt_number}" not in url_template:
            raise ValueError("url_template must contain {receipt_number}")
        self.url_template = url_template
        self.box_size = box_size
        self.border = border

    def verification_url(self, receipt_number: str) -> str:
        return self.url_template.format(receipt_number=receipt_number)

    def png_bytes(self, receipt_number: str) -> bytes:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(self.verification_url(receipt_number))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        buf = BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    def generate(self, receipt_number: str) -> str:
        encoded = base64.b64encode(self.png_bytes(receipt_number)).decode("ascii")
        return f"data:image/png;base64,{encoded}"
