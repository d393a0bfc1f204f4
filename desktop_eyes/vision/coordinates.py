"""
Coordinate helpers between window-relative pixels, normalized positions, and screen pixels.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from desktop_eyes.contracts.elements import (
    Bounds,
    Element,
    NormalizedPoint,
    ScreenPoint,
    WindowFrame,
)


def to_screen(frame: WindowFrame, point: NormalizedPoint) -> ScreenPoint:
    """screen = frame.origin + normalized * frame.size"""
    if not frame.is_resolved:
        raise ValueError("window frame is not resolved")
    return frame.to_screen(point)


def to_normalized(frame: WindowFrame, screen_x: float, screen_y: float) -> NormalizedPoint:
    return frame.to_normalized(screen_x, screen_y)


def normalize_window_pixel(
    x: float, y: float, width: float, height: float
) -> NormalizedPoint:
    """Normalize a pixel position inside an image/window of the given size."""
    if width <= 0 or height <= 0:
        return NormalizedPoint(x=0.0, y=0.0)
    return NormalizedPoint.clamped(x / width, y / height)


def bounds_center_normalized(bounds: Bounds, width: float, height: float) -> NormalizedPoint:
    cx, cy = bounds.center()
    return normalize_window_pixel(cx, cy, width, height)


def screen_rect_to_window(
    frame: WindowFrame, left: float, top: float, right: float, bottom: float
) -> Bounds:
    """Convert an absolute screen rectangle into window-relative bounds."""
    return Bounds(
        x=float(left - frame.x),
        y=float(top - frame.y),
        width=max(0.0, float(right - left)),
        height=max(0.0, float(bottom - top)),
    )


def stamp_elements(elements: Iterable[Element], frame: WindowFrame) -> List[Element]:
    """Recompute screen positions for every element against ``frame``."""
    return [element.at_frame(frame) for element in elements]


def resolve_target(element: Element, frame: WindowFrame) -> Tuple[int, int]:
    """
    Integer pointer target for ``element`` against the latest frame.

    The cached ``element.screen`` is ignored on purpose: the window may have
    moved between detection and actuation.
    """
    point = to_screen(frame, element.normalized)
    return int(round(point.x)), int(round(point.y))


def format_point(point: Optional[object], digits: int = 3) -> str:
    if point is None:
        return "n/a"
    x = getattr(point, "x", 0.0)
    y = getattr(point, "y", 0.0)
    return f"({x:.{digits}f}, {y:.{digits}f})"


__all__ = [
    "bounds_center_normalized",
    "format_point",
    "normalize_window_pixel",
    "resolve_target",
    "screen_rect_to_window",
    "stamp_elements",
    "to_normalized",
    "to_screen",
]
