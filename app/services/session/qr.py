import base64
import io

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

from app.constants import QR_IMAGE_MARGIN, QR_IMAGE_WIDTH


def _build(text: str, border: int = QR_IMAGE_MARGIN) -> qrcode.QRCode:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=border)
    qr.add_data(text)
    qr.make(fit=True)
    return qr


def render_png_data_url(
    text: str, width: int = QR_IMAGE_WIDTH, margin: int = QR_IMAGE_MARGIN
) -> str:
    """Render a pairing code as a `width` pixel square PNG data URL"""
    qr = _build(text, border=margin)
    modules = qr.modules_count + 2 * margin
    qr.box_size = max(1, width // modules)
    image = qr.make_image(fill_color="black", back_color="white").get_image()
    if image.size != (width, width):
        image = image.resize((width, width), Image.Resampling.NEAREST)

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def render_ascii(text: str) -> str:
    """Terminal rendering of a pairing code"""
    qr = _build(text, border=1)
    out = io.StringIO()
    qr.print_ascii(out=out, invert=True)
    return out.getvalue()
