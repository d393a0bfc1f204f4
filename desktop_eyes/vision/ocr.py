import os
import subprocess
import tempfile
from dataclasses import asdict, dataclass
from typing import List, Optional

import pytesseract
from PIL import Image, ImageFilter, ImageOps


@dataclass
class OcrBox:
    text: str
    x: int
    y: int
    width: int
    height: int
    conf: float

    def to_dict(self) -> dict:
        return asdict(self)


def preprocess_image(image: Image.Image) -> Image.Image:
    """Grayscale, stretch contrast, sharpen."""
    gray = ImageOps.grayscale(image)
    normalized = ImageOps.autocontrast(gray)
    return normalized.filter(ImageFilter.SHARPEN)


def run_ocr_with_boxes(image: Image.Image, tesseract_cmd: Optional[str] = None) -> List[OcrBox]:
    """
    Word boxes from Tesseract via pytesseract.

    Raises pytesseract.TesseractNotFoundError when the engine is not installed.
    """
    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
    data = pytesseract.image_to_data(image, output_type=pytesseract.Output.DICT)

    boxes: List[OcrBox] = []
    n = len(data.get("text", []))
    for i in range(n):
        text = (data["text"][i] or "").strip()
        if not text:
            continue
        try:
            conf = float(data.get("conf", [])[i])
        except Exception:
            conf = -1.0
        try:
            box = OcrBox(
                text=text,
                x=int(data.get("left", [])[i]),
                y=int(data.get("top", [])[i]),
                width=int(data.get("width", [])[i]),
                height=int(data.get("height", [])[i]),
                conf=conf,
            )
            boxes.append(box)
        except Exception:
            continue
    return boxes


def run_tesseract_cli(image: Image.Image, tesseract_cmd: str = "tesseract", timeout: float = 30.0) -> List[str]:
    """
    Run the tesseract binary directly (``--psm 6``) and return non-empty lines.

    Raises FileNotFoundError when the binary is missing and RuntimeError on a
    non-zero exit.
    """
    fd, path = tempfile.mkstemp(suffix=".png", prefix="desktop_eyes_ocr_")
    os.close(fd)
    try:
        image.save(path, format="PNG")
        completed = subprocess.run(
            [tesseract_cmd, path, "stdout", "--psm", "6"],
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    finally:
        try:
            os.remove(path)
        except OSError:
            pass
    if completed.returncode != 0:
        raise RuntimeError(f"tesseract exited with {completed.returncode}: {(completed.stderr or '').strip()[:200]}")
    return [line.strip() for line in (completed.stdout or "").splitlines() if line.strip()]
