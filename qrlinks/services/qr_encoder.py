"""
QR Encoder

Renders the redirect URL of a link into a PNG and returns it as a base64
data URL. The rest of the service treats the payload as opaque.
"""

import base64
import io
from dataclasses import dataclass

import qrcode
from PIL import ImageColor
from qrcode.image.pil import PilImage

ERROR_CORRECTION = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


@dataclass(frozen=True)
class QROptions:
    pixel_size: int = 256
    error_correction_level: str = "M"
    dark_color: str = "#000000"
    light_color: str = "#FFFFFF"
    border: int = 4


class QREncoder:
    """Encodes text into a QR image payload."""

    def encode(self, text: str, options: QROptions = QROptions()) -> str:
        """
        Render text as a QR code.

        Args:
            text: Content of the symbol (the link's redirect URL)
            options: Pixel size, error correction level and colors

        Returns:
            "data:image/png;base64,..." payload
        """
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECTION[options.error_correction_level],
            box_size=10,
            border=options.border,
        )
        qr.add_data(text)
        qr.make(fit=True)

        image = qr.make_image(
            image_factory=PilImage,
            fill_color=ImageColor.getrgb(options.dark_color),
            back_color=ImageColor.getrgb(options.light_color),
        ).get_image()
        image = image.convert("RGB").resize((options.pixel_size, options.pixel_size))

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
