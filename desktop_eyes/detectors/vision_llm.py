"""
Vision-language model detector.

The cropped window screenshot is sent to an OpenAI-compatible chat endpoint
with a prompt asking for a JSON description of interactive elements. The
reply is parsed leniently (fenced or embedded JSON, missing fields defaulted).

When the endpoint is unreachable or the reply cannot be parsed, a fixed
two-element substitute set is returned with ``is_fallback=True``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

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
from desktop_eyes.contracts.errors import DetectorFailed, ParseFailed, VisionServiceError
from desktop_eyes.detectors.base import DetectorStrategy, button_action, canned_elements
from desktop_eyes.llm.vision_client import VisionClient
from desktop_eyes.vision.coordinates import bounds_center_normalized
from desktop_eyes.vision.screenshot import encode_png_base64

logger = logging.getLogger(__name__)

AI_CONFIDENCE = 0.85
FALLBACK_CONFIDENCE = 0.7
FALLBACK_CATALOGUE = (
    ("Update Available", 0.91, 0.08),
    ("Settings", 0.06, 0.07),
)
# Window-relative (x, y, w, h) fractions for the entries above.
FALLBACK_BOXES = (
    (0.85, 0.05, 0.12, 0.06),
    (0.02, 0.05, 0.08, 0.04),
)

FOCUS_BUTTONS = ("Update Available", "Settings", "OK", "Cancel", "Save", "Login", "Submit", "Next", "Previous", "Close")

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_prompt(app_name: Optional[str], width: float, height: float) -> str:
    target = app_name or "desktop application"
    example = {
        "elements": [
            {
                "type": "button|text|input|link|image|menu|checkbox|radio|slider|unknown",
                "text": "visible text content",
                "bounds": {"x": 100, "y": 50, "width": 80, "height": 30},
                "normalizedPosition": {"x": 0.1, "y": 0.05},
                "confidence": 0.95,
                "description": "what the element is",
                "isClickable": True,
                "isEnabled": True,
            }
        ],
        "summary": "short summary of the UI",
        "suggestedActions": ["Click 'Update Available' button at (0.85, 0.1)"],
    }
    return (
        f"Analyze this screenshot of a {target} window ({int(width)}x{int(height)}px) "
        "and identify all interactive UI elements.\n\n"
        "Reply with a single JSON object shaped like:\n"
        f"{json.dumps(example, indent=2)}\n\n"
        "Focus on:\n"
        f"1. Buttons (especially {', '.join(repr(b) for b in FOCUS_BUTTONS)})\n"
        "2. Text input fields\n"
        "3. Links and menus\n"
        "4. Checkboxes, radio buttons and sliders\n\n"
        "bounds are pixels relative to the screenshot; normalizedPosition is the element "
        "center as a fraction (0 to 1) of the window width and height."
    )


def _strip_fences(text: str) -> str:
    if "```" not in text:
        return text
    start = text.find("```")
    end = text.find("```", start + 3)
    if end == -1:
        return text
    inner = text[start + 3 : end].strip()
    # Drop a language tag such as ```json
    if inner[:4].lower() == "json":
        inner = inner[4:].lstrip()
    return inner


def _extract_json(raw: str) -> Dict[str, Any]:
    text = _strip_fences(raw or "").strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(text)
        if not match:
            raise ParseFailed(DetectionMethod.AI.value, "no JSON object in model reply")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise ParseFailed(DetectionMethod.AI.value, f"invalid JSON in model reply: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseFailed(DetectionMethod.AI.value, "model reply is not a JSON object")
    return data


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_element(item: Dict[str, Any], width: float, height: float) -> Element:
    raw_bounds = item.get("bounds") if isinstance(item.get("bounds"), dict) else {}
    bounds = Bounds(
        x=_number(raw_bounds.get("x")),
        y=_number(raw_bounds.get("y")),
        width=max(0.0, _number(raw_bounds.get("width"))),
        height=max(0.0, _number(raw_bounds.get("height"))),
    )
    raw_point = item.get("normalizedPosition")
    if isinstance(raw_point, dict) and "x" in raw_point and "y" in raw_point:
        normalized = NormalizedPoint.clamped(_number(raw_point.get("x")), _number(raw_point.get("y")))
    elif not bounds.is_empty:
        normalized = bounds_center_normalized(bounds, width, height)
    else:
        normalized = NormalizedPoint(x=0.0, y=0.0)
    return Element(
        kind=ElementKind.parse(item.get("type")),
        label=str(item.get("text") or ""),
        bounds=bounds,
        normalized=normalized,
        clickable=item.get("isClickable") is not False,
        enabled=item.get("isEnabled") is not False,
        confidence=AI_CONFIDENCE,
        source=DetectionMethod.AI,
        description=str(item["description"]) if item.get("description") else None,
    )


def parse_reply(raw: str, width: float, height: float) -> Tuple[List[Element], str, List[str]]:
    """Return ``(elements, summary, suggested_actions)`` from a model reply."""
    data = _extract_json(raw)
    items = data.get("elements") or []
    if not isinstance(items, list):
        raise ParseFailed(DetectionMethod.AI.value, "'elements' is not a list")
    elements = [_parse_element(item, width, height) for item in items if isinstance(item, dict)]
    summary = str(data.get("summary") or f"AI analysis found {len(elements)} elements")
    actions = data.get("suggestedActions") or []
    if not isinstance(actions, list):
        actions = []
    return elements, summary, [str(a) for a in actions if a]


def fallback_result(frame: WindowFrame, reason: str) -> DetectionResult:
    elements = canned_elements(
        FALLBACK_CATALOGUE, DetectionMethod.AI, FALLBACK_CONFIDENCE, frame=frame, boxes=FALLBACK_BOXES
    )
    return DetectionResult(
        method=DetectionMethod.AI,
        elements=tuple(elements),
        summary=f"Fallback analysis - vision model unavailable ({reason})",
        suggested_actions=tuple(button_action(e.display_name, e.normalized) for e in elements),
        is_fallback=True,
    )


class VisionLLMDetector(DetectorStrategy):
    method = DetectionMethod.AI
    needs_screenshot = True

    def __init__(self, settings: DetectionSettings, client: Optional[VisionClient] = None) -> None:
        self.settings = settings
        self.client = client or VisionClient(settings)

    def is_available(self) -> bool:
        return bool(self.settings.enable_ai and self.settings.vlm_base_url)

    def detect(self, app_name: str, frame: WindowFrame, screenshot: Optional[Image.Image] = None) -> DetectionResult:
        if screenshot is None:
            raise DetectorFailed(self.method.value, "screenshot required")
        width, height = screenshot.size
        prompt = build_prompt(app_name, width, height)
        try:
            reply = self.client.complete(prompt, encode_png_base64(screenshot))
            elements, summary, actions = parse_reply(reply, width, height)
        except (VisionServiceError, ParseFailed) as exc:
            logger.warning("Vision analysis for %s fell back: %s", app_name, exc)
            return fallback_result(frame, exc.code)
        return DetectionResult(
            method=self.method,
            elements=tuple(elements),
            summary=summary,
            suggested_actions=tuple(actions),
        )
