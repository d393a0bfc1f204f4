import base64
import io

import mss
from mss.exception import ScreenShotError
from PIL import Image

from desktop_eyes.contracts.elements import WindowFrame
from desktop_eyes.contracts.errors import PermissionDenied


def capture_window(frame: WindowFrame) -> Image.Image:
    """
    Capture the screen region covered by ``frame``. Raises on failure.
    """
    if not frame.is_resolved:
        raise ValueError("cannot capture an unresolved window frame")
    bbox = {
        "left": int(frame.x),
        "top": int(frame.y),
        "width": int(frame.width),
        "height": int(frame.height),
    }
    try:
        with mss.mss() as sct:
            raw = sct.grab(bbox)
            return Image.frombytes("RGB", raw.size, raw.bgra, "raw", "BGRX")
    except PermissionError as exc:
        raise PermissionDenied(f"Screen capture permission denied: {exc}") from exc
    except ScreenShotError as exc:
        if "denied" in str(exc).lower():
            raise PermissionDenied(f"Screen capture permission denied: {exc}") from exc
        raise


def encode_png_base64(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")
