"""
Common interface for element detection strategies.

A strategy receives the resolved window frame (and, when it asks for one, a
screenshot of that frame) and returns a DetectionResult whose elements carry
window-relative normalized positions. Screen positions are stamped later by
the pipeline against the frame that was current for the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Tuple

from PIL import Image

from desktop_eyes.contracts.elements import (
    Bounds,
    DetectionMethod,
    DetectionResult,
    Element,
    ElementKind,
    NormalizedPoint,
    WindowFrame,
)


class DetectorStrategy(ABC):
    method: DetectionMethod
    needs_screenshot: bool = False

    @abstractmethod
    def detect(
        self,
        app_name: str,
        frame: WindowFrame,
        screenshot: Optional[Image.Image] = None,
    ) -> DetectionResult:
        """Find elements in ``app_name``'s window; raise on failure."""

    def is_available(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(method={self.method.value})"


def button_action(label: str, point: NormalizedPoint) -> str:
    return f'Click "{label}" button at ({point.x:.3f}, {point.y:.3f})'


def canned_elements(
    catalogue: Sequence[Tuple[str, float, float]],
    source: DetectionMethod,
    confidence: float,
    frame: Optional[WindowFrame] = None,
    boxes: Optional[Sequence[Tuple[float, float, float, float]]] = None,
) -> List[Element]:
    """
    Build button elements from ``(label, nx, ny)`` entries.

    ``boxes`` holds window-relative fractions ``(x, y, w, h)`` that are scaled
    by the frame size when both are given.
    """
    elements: List[Element] = []
    for idx, (label, nx, ny) in enumerate(catalogue):
        bounds = None
        if boxes is not None and frame is not None:
            bx, by, bw, bh = boxes[idx]
            bounds = Bounds(
                x=frame.width * bx,
                y=frame.height * by,
                width=frame.width * bw,
                height=frame.height * bh,
            )
        elements.append(
            Element(
                kind=ElementKind.BUTTON,
                label=label,
                bounds=bounds,
                normalized=NormalizedPoint(x=nx, y=ny),
                clickable=True,
                enabled=True,
                confidence=confidence,
                source=source,
                description=f"{label} button",
            )
        )
    return elements


def dedupe_actions(actions: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    ordered: List[str] = []
    for action in actions:
        if action and action not in seen:
            seen.add(action)
            ordered.append(action)
    return tuple(ordered)


__all__ = ["DetectorStrategy", "button_action", "canned_elements", "dedupe_actions"]
