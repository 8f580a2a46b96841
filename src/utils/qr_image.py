"""QR code images for shareable join links."""

import io

import qrcode

from utils.invitation_lifecycle import build_join_url

QR_SETTINGS = {
    "version": 1,
    "error_correction": qrcode.constants.ERROR_CORRECT_M,  # ~15% error correction
    "box_size": 10,
    "border": 4,
}


def render_join_qr_png(token: str) -> bytes:
    """Render the join URL for ``token`` as PNG bytes."""
    qr = qrcode.QRCode(**QR_SETTINGS)
    qr.add_data(build_join_url(token))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
