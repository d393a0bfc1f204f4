"""
Structured element model shared by detectors, the pipeline, and actuation.

Positions are kept twice on an Element: ``normalized`` is window-relative and
authoritative, ``screen`` is derived from a specific WindowFrame and must be
recomputed (see ``Element.at_frame``) whenever the frame may have changed.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ElementKind(str, Enum):
    BUTTON = "button"
    STATIC_TEXT = "text"
    TEXT_INPUT = "input"
    LINK = "link"
    IMAGE = "image"
    MENU = "menu"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SLIDER = "slider"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: object) -> "ElementKind":
        """Lenient lookup by value or member name; anything else is UNKNOWN."""
        text = str(raw or "").strip().lower()
        for kind in cls:
            if text == kind.value or text == kind.name.lower():
                return kind
        return cls.UNKNOWN


CLICKABLE_KINDS = frozenset(
    {
        ElementKind.BUTTON,
        ElementKind.TEXT_INPUT,
        ElementKind.LINK,
        ElementKind.IMAGE,
        ElementKind.MENU,
        ElementKind.CHECKBOX,
        ElementKind.RADIO,
        ElementKind.SLIDER,
    }
)


class DetectionMethod(str, Enum):
    ACCESSIBILITY = "accessibility"
    AI = "ai"
    OCR = "ocr"
    HEURISTIC = "heuristic"


# Waterfall order used by the pipeline and by the combiner.
PRIORITY_ORDER: Tuple[DetectionMethod, ...] = (
    DetectionMethod.ACCESSIBILITY,
    DetectionMethod.AI,
    DetectionMethod.OCR,
    DetectionMethod.HEURISTIC,
)


class ScreenPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class NormalizedPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)

    @classmethod
    def clamped(cls, x: float, y: float) -> "NormalizedPoint":
        return cls(x=min(1.0, max(0.0, float(x))), y=min(1.0, max(0.0, float(y))))


class Bounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0


class WindowFrame(BaseModel):
    """Screen rectangle of a focused application's primary window."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float
    app_name: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.width > 0 and self.height > 0

    def to_screen(self, point: NormalizedPoint) -> ScreenPoint:
        return ScreenPoint(x=self.x + point.x * self.width, y=self.y + point.y * self.height)

    def to_normalized(self, x: float, y: float) -> NormalizedPoint:
        if not self.is_resolved:
            raise ValueError("cannot normalize against an unresolved window frame")
        return NormalizedPoint.clamped((x - self.x) / self.width, (y - self.y) / self.height)

    def describe(self) -> str:
        return f"{self.width:g}x{self.height:g} at ({self.x:g}, {self.y:g})"


class Element(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ElementKind = ElementKind.UNKNOWN
    label: Optional[str] = None
    bounds: Optional[Bounds] = None
    normalized: NormalizedPoint
    screen: Optional[ScreenPoint] = None
    clickable: bool = True
    enabled: bool = True
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    source: DetectionMethod
    description: Optional[str] = None
    role: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or self.kind.value

    def at_frame(self, frame: WindowFrame) -> "Element":
        """Return a copy whose screen position is derived from ``frame``."""
        return self.model_copy(update={"screen": frame.to_screen(self.normalized)})


class DetectionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: DetectionMethod
    elements: Tuple[Element, ...] = ()
    summary: str = ""
    suggested_actions: Tuple[str, ...] = ()
    # True when the detector substituted its own canned elements after a failure.
    is_fallback: bool = False


class StrategyAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: DetectionMethod
    status: str
    element_count: int = 0
    reason: Optional[str] = None


class PipelineOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    chosen_method: Optional[DetectionMethod]
    elements: Tuple[Element, ...]
    frame: WindowFrame
    summary: str = ""
    suggested_actions: Tuple[str, ...] = ()
    attempts: Tuple[StrategyAttempt, ...] = ()
    methods_used: Tuple[DetectionMethod, ...] = ()
    is_fallback: bool = False
    request_id: Optional[str] = None


__all__ = [
    "Bounds",
    "CLICKABLE_KINDS",
    "DetectionMethod",
    "DetectionResult",
    "Element",
    "ElementKind",
    "NormalizedPoint",
    "PRIORITY_ORDER",
    "PipelineOutcome",
    "ScreenPoint",
    "StrategyAttempt",
    "WindowFrame",
]
