"""QR code image rendering for table links."""
import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M


def render_qr_data_url(data: str, box_size: int = 10, border: int = 2) -> str:
    """Render ``data`` as a PNG QR code and return it as a ``data:`` URL."""
    img = qrcode.make(data, error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
