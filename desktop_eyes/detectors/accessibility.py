"""
Accessibility-tree detector backed by Windows UI Automation.

The tree under the application's top-level window is walked breadth-first;
each control type maps to an ElementKind through a fixed table and only
enabled, clickable controls are reported.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from PIL import Image

try:
    import uiautomation as auto
except Exception:  # pragma: no cover - Windows only
    auto = None  # type: ignore

from desktop_eyes.contracts.elements import (
    CLICKABLE_KINDS,
    DetectionMethod,
    DetectionResult,
    Element,
    ElementKind,
    WindowFrame,
)
from desktop_eyes.contracts.errors import DetectorFailed
from desktop_eyes.detectors.base import DetectorStrategy
from desktop_eyes.utils import win32_windows
from desktop_eyes.vision.coordinates import screen_rect_to_window

logger = logging.getLogger(__name__)

ACCESSIBILITY_CONFIDENCE = 0.95

CONTROL_KIND_MAP: Dict[str, ElementKind] = {
    "buttoncontrol": ElementKind.BUTTON,
    "splitbuttoncontrol": ElementKind.BUTTON,
    "tabitemcontrol": ElementKind.BUTTON,
    "editcontrol": ElementKind.TEXT_INPUT,
    "textcontrol": ElementKind.STATIC_TEXT,
    "hyperlinkcontrol": ElementKind.LINK,
    "imagecontrol": ElementKind.IMAGE,
    "menucontrol": ElementKind.MENU,
    "menuitemcontrol": ElementKind.MENU,
    "comboboxcontrol": ElementKind.MENU,
    "checkboxcontrol": ElementKind.CHECKBOX,
    "radiobuttoncontrol": ElementKind.RADIO,
    "slidercontrol": ElementKind.SLIDER,
}

RawControl = Dict[str, Any]


def control_kind(type_name: str) -> ElementKind:
    return CONTROL_KIND_MAP.get(str(type_name or "").strip().lower(), ElementKind.UNKNOWN)


def _rect_tuple(control: Any) -> Optional[Tuple[float, float, float, float]]:
    rect = getattr(control, "BoundingRectangle", None)
    if not rect:
        return None
    try:
        return (float(rect.left), float(rect.top), float(rect.right), float(rect.bottom))
    except Exception:
        return None


def walk_tree(root: Any, max_depth: int = 12, max_nodes: int = 2000) -> List[RawControl]:
    """Breadth-first snapshot of the controls under ``root`` (root excluded)."""
    try:
        queue: List[Tuple[Any, int]] = [(child, 1) for child in root.GetChildren()]
    except Exception:
        queue = []
    controls: List[RawControl] = []
    visited = 0
    while queue and visited < max_nodes:
        control, depth = queue.pop(0)
        visited += 1
        try:
            controls.append(
                {
                    "name": str(getattr(control, "Name", "") or "").strip(),
                    "type_name": str(getattr(control, "ControlTypeName", "") or ""),
                    "enabled": bool(getattr(control, "IsEnabled", True)),
                    "rect": _rect_tuple(control),
                    "description": str(getattr(control, "HelpText", "") or "") or None,
                }
            )
        except Exception:
            continue
        if depth >= max_depth:
            continue
        try:
            queue.extend((child, depth + 1) for child in control.GetChildren())
        except Exception:
            continue
    return controls


def _uia_root(app_name: str) -> Any:
    window = win32_windows.find_window(app_name)
    if window is None:
        return None
    ctrl = auto.ControlFromHandle(window.hwnd)
    if not ctrl:
        return None
    try:
        return ctrl.GetTopLevelControl() or ctrl
    except Exception:
        return ctrl


class AccessibilityDetector(DetectorStrategy):
    method = DetectionMethod.ACCESSIBILITY
    needs_screenshot = False

    def __init__(
        self,
        root_provider: Optional[Callable[[str], Any]] = None,
        max_depth: int = 12,
        max_nodes: int = 2000,
    ) -> None:
        self._root_provider = root_provider
        self.max_depth = max_depth
        self.max_nodes = max_nodes

    def is_available(self) -> bool:
        return self._root_provider is not None or auto is not None

    def _snapshot(self, app_name: str) -> List[RawControl]:
        if self._root_provider is not None:
            root = self._root_provider(app_name)
            if root is None:
                raise DetectorFailed(self.method.value, f"no accessibility root for '{app_name}'")
            return walk_tree(root, self.max_depth, self.max_nodes)
        if auto is None:
            raise DetectorFailed(self.method.value, "UI Automation is not available on this platform")
        with auto.UIAutomationInitializerInThread(debug=False):
            root = _uia_root(app_name)
            if root is None:
                raise DetectorFailed(self.method.value, f"no accessibility root for '{app_name}'")
            return walk_tree(root, self.max_depth, self.max_nodes)

    def detect(self, app_name: str, frame: WindowFrame, screenshot: Optional[Image.Image] = None) -> DetectionResult:
        controls = self._snapshot(app_name)
        elements: List[Element] = []
        for raw in controls:
            kind = control_kind(raw["type_name"])
            clickable = kind in CLICKABLE_KINDS and raw["enabled"]
            if not clickable or raw["rect"] is None:
                continue
            left, top, right, bottom = raw["rect"]
            elements.append(
                Element(
                    kind=kind,
                    label=raw["name"] or None,
                    bounds=screen_rect_to_window(frame, left, top, right, bottom),
                    normalized=frame.to_normalized(left, top),
                    clickable=True,
                    enabled=True,
                    confidence=ACCESSIBILITY_CONFIDENCE,
                    source=self.method,
                    description=raw["description"],
                    role=raw["type_name"] or None,
                )
            )

        actions: List[str] = []
        for element in elements:
            point = f"({element.normalized.x:.3f}, {element.normalized.y:.3f})"
            if element.label:
                actions.append(f'Click "{element.label}" button at {point}')
            elif element.kind == ElementKind.BUTTON:
                actions.append(f"Click {element.kind.value} at {point}")
        logger.debug("Accessibility walk for %s: %d controls, %d clickable", app_name, len(controls), len(elements))
        return DetectionResult(
            method=self.method,
            elements=tuple(elements),
            summary=(
                f"Found {len(controls)} UI elements ({len(elements)} interactive) in {app_name} window"
            ),
            suggested_actions=tuple(actions),
        )
