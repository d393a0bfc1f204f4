"""
OCR detector.

Tries, in order and only while nothing has been found:
  1. word boxes from pytesseract (confidence 0.9),
  2. line output of the tesseract binary run directly (confidence 0.8),
  3. a pattern guess of common button labels at canonical positions (0.7).
"""

from __future__ import annotations

import logging
import shutil
from typing import Callable, List, Optional, Sequence

import pytesseract
from PIL import Image

from desktop_eyes.config import DetectionSettings
from desktop_eyes.contracts.elements import (
    Bounds,
    DetectionMethod,
    DetectionResult,
    Element,
    ElementKind,
    NormalizedPoint,
    WindowFrame,
)
from desktop_eyes.contracts.errors import DetectorFailed
from desktop_eyes.detectors.base import DetectorStrategy, canned_elements, dedupe_actions
from desktop_eyes.vision import ocr as ocr_engine
from desktop_eyes.vision.coordinates import bounds_center_normalized

logger = logging.getLogger(__name__)

WORD_CONFIDENCE = 0.9
LINE_CONFIDENCE = 0.8
PATTERN_CONFIDENCE = 0.7

# Label and window-relative (x, y, w, h) box.
PATTERN_BOXES = (
    ("Update Available", (0.85, 0.05, 0.12, 0.06)),
    ("Settings", (0.02, 0.05, 0.08, 0.04)),
    ("OK", (0.45, 0.8, 0.1, 0.05)),
    ("Cancel", (0.35, 0.8, 0.1, 0.05)),
    ("Save", (0.55, 0.8, 0.1, 0.05)),
    ("Login", (0.4, 0.6, 0.2, 0.05)),
    ("Submit", (0.4, 0.7, 0.2, 0.05)),
    ("Next", (0.7, 0.8, 0.1, 0.05)),
    ("Previous", (0.2, 0.8, 0.1, 0.05)),
    ("Close", (0.9, 0.05, 0.08, 0.04)),
)

# Keyword groups mapped to the canonical button name used in suggestions.
ACTION_KEYWORDS = (
    (("update", "available"), "Update Available"),
    (("settings", "preferences"), "Settings"),
    (("ok", "confirm"), "OK"),
    (("cancel",), "Cancel"),
    (("save",), "Save"),
    (("login", "sign in"), "Login"),
    (("submit",), "Submit"),
    (("next",), "Next"),
    (("previous", "back"), "Previous"),
    (("close",), "Close"),
)

_MISSING_ENGINE = (FileNotFoundError, pytesseract.TesseractNotFoundError)


def suggest_action(element: Element) -> str:
    text = (element.label or "").lower()
    point = f"({element.normalized.x:.3f}, {element.normalized.y:.3f})"
    for keywords, name in ACTION_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return f'Click "{name}" button at {point}'
    return f'Click "{element.label}" at {point}'


def _ocr_element(label: str, bounds: Bounds, normalized: NormalizedPoint, confidence: float) -> Element:
    return Element(
        kind=ElementKind.BUTTON,
        label=label,
        bounds=bounds,
        normalized=normalized,
        clickable=True,
        enabled=True,
        confidence=confidence,
        source=DetectionMethod.OCR,
    )


class OcrDetector(DetectorStrategy):
    method = DetectionMethod.OCR
    needs_screenshot = True

    def __init__(
        self,
        settings: DetectionSettings,
        word_reader: Optional[Callable[[Image.Image], Sequence[ocr_engine.OcrBox]]] = None,
        line_reader: Optional[Callable[[Image.Image], Sequence[str]]] = None,
    ) -> None:
        self.settings = settings
        self._word_reader = word_reader or (
            lambda image: ocr_engine.run_ocr_with_boxes(image, settings.tesseract_cmd)
        )
        self._line_reader = line_reader or (
            lambda image: ocr_engine.run_tesseract_cli(image, settings.tesseract_cmd)
        )

    def is_available(self) -> bool:
        return bool(self.settings.enable_ocr and shutil.which(self.settings.tesseract_cmd))

    def _from_words(self, image: Image.Image) -> List[Element]:
        width, height = image.size
        elements: List[Element] = []
        for box in self._word_reader(image):
            if box.conf < 0 or not box.text.strip():
                continue
            bounds = Bounds(x=box.x, y=box.y, width=box.width, height=box.height)
            elements.append(
                _ocr_element(box.text, bounds, bounds_center_normalized(bounds, width, height), WORD_CONFIDENCE)
            )
        return elements

    def _from_lines(self, image: Image.Image) -> List[Element]:
        # Line output carries no geometry; lay lines out top to bottom.
        elements: List[Element] = []
        for idx, line in enumerate(self._line_reader(image)):
            bounds = Bounds(x=50, y=50 + idx * 30, width=len(line) * 10, height=25)
            normalized = NormalizedPoint.clamped(0.1, 0.1 + idx * 0.05)
            elements.append(_ocr_element(line, bounds, normalized, LINE_CONFIDENCE))
        return elements

    def _from_patterns(self, frame: WindowFrame) -> List[Element]:
        catalogue = [(label, bx + bw / 2, by + bh / 2) for label, (bx, by, bw, bh) in PATTERN_BOXES]
        return canned_elements(
            catalogue,
            self.method,
            PATTERN_CONFIDENCE,
            frame=frame,
            boxes=[box for _, box in PATTERN_BOXES],
        )

    def detect(self, app_name: str, frame: WindowFrame, screenshot: Optional[Image.Image] = None) -> DetectionResult:
        if screenshot is None:
            raise DetectorFailed(self.method.value, "screenshot required")
        try:
            image = ocr_engine.preprocess_image(screenshot)
        except Exception as exc:  # noqa: BLE001
            logger.debug("OCR preprocessing failed, using raw screenshot: %s", exc)
            image = screenshot

        elements: List[Element] = []
        source = "pattern"
        for name, step in (("pytesseract", self._from_words), ("tesseract-cli", self._from_lines)):
            try:
                elements = step(image)
            except _MISSING_ENGINE as exc:
                logger.debug("%s unavailable: %s", name, exc)
                continue
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s failed for %s: %s", name, app_name, exc)
                continue
            if elements:
                source = name
                break

        if not elements:
            elements = self._from_patterns(frame)
            source = "pattern"

        logger.debug("OCR for %s produced %d elements via %s", app_name, len(elements), source)
        return DetectionResult(
            method=self.method,
            elements=tuple(elements),
            summary=f"OCR detected {len(elements)} text elements",
            suggested_actions=dedupe_actions(suggest_action(e) for e in elements),
        )
