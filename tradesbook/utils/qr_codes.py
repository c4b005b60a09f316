"""
QR code utilities for booking tracking.
Booking references are printed as QR codes that open the public tracker.
"""

import base64
import io
import secrets
import string
from typing import Optional

import qrcode

from ..config import PUBLIC_BASE_URL

QR_CODE_PREFIX = "BK-"
QR_CODE_LENGTH = 8
_ALPHABET = string.ascii_uppercase + string.digits


def generate_booking_qr_code() -> str:
    """Generate a booking reference like BK-7Q2KX9ZD (uniqueness is enforced by the DB)"""
    return QR_CODE_PREFIX + "".join(secrets.choice(_ALPHABET) for _ in range(QR_CODE_LENGTH))


def build_tracking_url(qr_code: str) -> str:
    return f"{PUBLIC_BASE_URL.rstrip('/')}/qr-tracking/{qr_code}"


def generate_qr_data_url(text: str, box_size: int = 8, border: int = 2) -> str:
    """Render text as a PNG QR code and return it as a data URL"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(text)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}"


def detect_device_type(user_agent: Optional[str]) -> str:
    if not user_agent:
        return "unknown"

    ua = user_agent.lower()
    if "mobile" in ua or "android" in ua or "iphone" in ua:
        return "mobile"
    if "tablet" in ua or "ipad" in ua:
        return "tablet"
    return "desktop"
