"""
Tool operations exposed at the dispatch boundary.

Every public method runs under a process-wide lock so only one tool call is
in flight at a time. Element references are re-resolved against a freshly
queried window frame immediately before any pointer or keyboard action.
"""

from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from desktop_eyes.config import DetectionSettings
from desktop_eyes.contracts.elements import Element, ElementKind, PipelineOutcome, WindowFrame
from desktop_eyes.contracts.errors import ElementNotFound
from desktop_eyes.contracts.report import (
    render_analysis,
    render_applications,
    render_availability,
    render_outcome,
)
from desktop_eyes.detectors.accessibility import AccessibilityDetector
from desktop_eyes.detectors.base import DetectorStrategy
from desktop_eyes.detectors.heuristic import HeuristicDetector
from desktop_eyes.detectors.ocr import OcrDetector
from desktop_eyes.detectors.vision_llm import VisionLLMDetector
from desktop_eyes.executor.input import KeyboardController
from desktop_eyes.executor.mouse import MouseController
from desktop_eyes.executor.pipeline import AUTO, DetectionPipeline
from desktop_eyes.executor.session import DetectionSession, pick_element
from desktop_eyes.logging_utils import generate_request_id, log_event
from desktop_eyes.utils.win32_windows import Win32WindowBridge
from desktop_eyes.vision.coordinates import resolve_target
from desktop_eyes.vision.window_bounds import WindowBoundsResolver, WindowBridge

logger = logging.getLogger(__name__)

_TOOL_LOCK = threading.Lock()


def _serialized(func: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
        with _TOOL_LOCK:
            return func(*args, **kwargs)

    return wrapper


def text_result(text: str, **data: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {"isError": False, "content": [{"type": "text", "text": text}]}
    if data:
        result["data"] = data
    return result


def build_strategies(settings: DetectionSettings) -> List[DetectorStrategy]:
    strategies: List[DetectorStrategy] = []
    if settings.enable_accessibility:
        strategies.append(AccessibilityDetector())
    if settings.enable_ai:
        strategies.append(VisionLLMDetector(settings))
    if settings.enable_ocr:
        strategies.append(OcrDetector(settings))
    strategies.append(HeuristicDetector())
    return strategies


class DesktopTools:
    def __init__(
        self,
        pipeline: DetectionPipeline,
        session: Optional[DetectionSession] = None,
        mouse: Optional[MouseController] = None,
        keyboard: Optional[KeyboardController] = None,
        settings: Optional[DetectionSettings] = None,
    ) -> None:
        self.pipeline = pipeline
        self.resolver: WindowBoundsResolver = pipeline.resolver
        self.session = session or DetectionSession()
        self.mouse = mouse or MouseController()
        self.keyboard = keyboard or KeyboardController()
        self.settings = settings or DetectionSettings()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[DetectionSettings] = None,
        bridge: Optional[WindowBridge] = None,
    ) -> "DesktopTools":
        settings = settings or DetectionSettings.from_env()
        resolver = WindowBoundsResolver(
            bridge or Win32WindowBridge(),
            primary_origin=settings.primary_origin,
            settle_seconds=settings.settle_seconds,
        )
        pipeline = DetectionPipeline(resolver, build_strategies(settings))
        return cls(pipeline, settings=settings)

    # -- helpers -----------------------------------------------------------

    def _detect(self, app_name: str, method: Optional[str] = AUTO, request_id: Optional[str] = None) -> PipelineOutcome:
        self.resolver.activate(app_name)
        return self.pipeline.run(self.session, app_name, method=method, request_id=request_id)

    def _reference(self, app_name: str, index: int, request_id: Optional[str]) -> Element:
        if request_id:
            return self.session.registry.lookup(request_id, int(index))
        return pick_element(self._detect(app_name), int(index))

    def _fresh_frame(self, app_name: str, request_id: Optional[str] = None) -> WindowFrame:
        self.resolver.activate(app_name)
        frame = self.resolver.resolve(app_name, request_id=request_id)
        self.session.focus(app_name, frame)
        return frame

    def _click(self, app_name: str, element: Element, button: str, request_id: Optional[str]) -> Dict[str, Any]:
        frame = self._fresh_frame(app_name, request_id)
        x, y = resolve_target(element, frame)
        self.mouse.click(x, y, button=button)
        log_event(
            "tool.click",
            request_id,
            {"app_name": app_name, "label": element.display_name, "x": x, "y": y, "button": button},
        )
        return {"x": x, "y": y, "frame": frame.model_dump()}

    # -- tools -------------------------------------------------------------

    @_serialized
    def get_clickable_elements(self, app_name: str, force_method: Optional[str] = AUTO) -> Dict[str, Any]:
        outcome = self._detect(app_name, method=force_method, request_id=generate_request_id())
        return text_result(render_outcome(app_name, outcome), outcome=outcome.model_dump(mode="json"))

    @_serialized
    def click_element(
        self,
        app_name: str,
        element_index: int,
        button: str = "left",
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        element = self._reference(app_name, element_index, request_id)
        target = self._click(app_name, element, button, request_id)
        text = (
            f'Clicked "{element.display_name}" ({element.kind.value}) at screen '
            f"({target['x']}, {target['y']}) with {button} button"
        )
        return text_result(text, element=element.model_dump(mode="json"), **target)

    @_serialized
    def move_mouse_to_element(
        self, app_name: str, element_index: int, request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        element = self._reference(app_name, element_index, request_id)
        frame = self._fresh_frame(app_name, request_id)
        x, y = resolve_target(element, frame)
        self.mouse.move(x, y)
        log_event("tool.move", request_id, {"app_name": app_name, "label": element.display_name, "x": x, "y": y})
        return text_result(
            f'Moved mouse to "{element.display_name}" at screen ({x}, {y})',
            element=element.model_dump(mode="json"),
            x=x,
            y=y,
        )

    @_serialized
    def find_and_click_element(
        self,
        app_name: str,
        search_text: Optional[str] = None,
        element_type: Optional[str] = None,
        button: str = "left",
    ) -> Dict[str, Any]:
        if not search_text and not element_type:
            raise ValueError("either 'searchText' or 'elementType' is required")
        outcome = self._detect(app_name)
        needle = (search_text or "").strip().lower()
        kind = ElementKind.parse(element_type) if element_type else None
        match: Optional[Element] = None
        for element in outcome.elements:
            if needle and needle not in (element.label or "").lower():
                continue
            if kind is not None and element.kind != kind:
                continue
            match = element
            break
        if match is None:
            wanted = " and ".join(
                part for part in (f'text "{search_text}"' if search_text else "", f"type {element_type}" if element_type else "") if part
            )
            raise ElementNotFound(f"No element matching {wanted} found in {app_name}")
        target = self._click(app_name, match, button, outcome.request_id)
        return text_result(
            f'Found and clicked "{match.display_name}" ({match.kind.value}) at screen ({target["x"]}, {target["y"]})',
            element=match.model_dump(mode="json"),
            requestId=outcome.request_id,
            **target,
        )

    @_serialized
    def type_text(
        self,
        app_name: str,
        element_index: int,
        text: str,
        clear_first: bool = False,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        element = self._reference(app_name, element_index, request_id)
        target = self._click(app_name, element, "left", request_id)
        if clear_first:
            self.keyboard.clear_field()
        status = self.keyboard.type_text(text)
        log_event("tool.type", request_id, {"app_name": app_name, "label": element.display_name, "chars": len(text)})
        return text_result(
            f'Typed "{text}" into "{element.display_name}" ({status})',
            element=element.model_dump(mode="json"),
            **target,
        )

    @_serialized
    def focus_application(self, identifier: str) -> Dict[str, Any]:
        frame = self._fresh_frame(identifier)
        return text_result(
            f"Focused on {identifier}\nWindow bounds: {frame.describe()}",
            frame=frame.model_dump(),
        )

    @_serialized
    def list_applications(self) -> Dict[str, Any]:
        apps = self.resolver.list_applications()
        payload = [{**app, "frame": app["frame"].model_dump()} for app in apps]
        return text_result(render_applications(apps), applications=payload)

    @_serialized
    def analyze_window(self, app_name: str, methods: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        self.resolver.activate(app_name)
        outcome = self.pipeline.run_all(self.session, app_name, methods=methods, request_id=generate_request_id())
        return text_result(render_analysis(app_name, outcome), outcome=outcome.model_dump(mode="json"))

    @_serialized
    def test_detection_methods(self) -> Dict[str, Any]:
        rows: List[Dict[str, Any]] = []
        for strategy in self.pipeline.strategies:
            detail = None
            available = strategy.is_available()
            if isinstance(strategy, VisionLLMDetector) and available:
                available = strategy.client.ping()
                detail = strategy.settings.vlm_base_url if available else f"no response from {strategy.settings.vlm_base_url}"
            rows.append({"method": strategy.method.value, "available": available, "detail": detail})
        enabled = {row["method"] for row in rows}
        for method, flag in (
            ("accessibility", self.settings.enable_accessibility),
            ("ai", self.settings.enable_ai),
            ("ocr", self.settings.enable_ocr),
        ):
            if method not in enabled and not flag:
                rows.append({"method": method, "available": False, "detail": "disabled by configuration"})
        return text_result(render_availability(rows), methods=rows)


__all__ = ["DesktopTools", "build_strategies", "text_result"]
