"""QR rendering of ``otpauth://`` provisioning URIs."""

from __future__ import annotations

import io

import qrcode
from qrcode.image.svg import SvgPathImage

SVG_DATA_URI_PREFIX = "data:image/svg+xml;utf-8,"


def render_qr_data_uri(uri: str) -> str:
    """Render ``uri`` as an SVG QR code embedded in a data URI.

    Args:
        uri: TOTP provisioning URI.

    Returns:
        ``data:image/svg+xml`` URI usable directly as an image source.
    """
    qr = qrcode.QRCode(box_size=10, border=4, image_factory=SvgPathImage)
    qr.add_data(uri)
    qr.make(fit=True)

    buffer = io.BytesIO()
    qr.make_image().save(buffer)
    return SVG_DATA_URI_PREFIX + buffer.getvalue().decode("utf-8")


__all__: list[str] = ["render_qr_data_uri", "SVG_DATA_URI_PREFIX"]
