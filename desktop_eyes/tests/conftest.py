from dataclasses import dataclass
from typing import Callable, List, Optional

import pytest
from PIL import Image

from desktop_eyes.contracts.elements import (
    DetectionMethod,
    DetectionResult,
    Element,
    ElementKind,
    NormalizedPoint,
    WindowFrame,
)
from desktop_eyes.detectors.base import DetectorStrategy
from desktop_eyes.executor.pipeline import DetectionPipeline
from desktop_eyes.executor.session import DetectionSession
from desktop_eyes.vision.window_bounds import WindowBoundsResolver


@dataclass
class FakeWindow:
    title: str
    pid: int = 42
    process_name: str = ""


class FakeBridge:
    """WindowBridge whose bounds come from a queue; the last entry repeats."""

    def __init__(self, frames: List[WindowFrame], windows: Optional[List[FakeWindow]] = None) -> None:
        self.frames = list(frames)
        self.windows = windows if windows is not None else [FakeWindow("Demo", process_name="demo.exe")]
        self.calls: List[str] = []

    def find_window(self, app_name):
        self.calls.append(f"find:{app_name}")
        for win in self.windows:
            if app_name.lower() in win.title.lower() or app_name.lower() in win.process_name.lower():
                return win
        return None

    def get_bounds(self, window):
        self.calls.append("bounds")
        if len(self.frames) > 1:
            return self.frames.pop(0)
        return self.frames[0]

    def activate(self, window):
        self.calls.append("activate")
        return True

    def move_to(self, window, x, y):
        self.calls.append(f"move:{x},{y}")
        return True

    def list_windows(self):
        return list(self.windows)


class FakeStrategy(DetectorStrategy):
    def __init__(self, method, elements=(), error: Optional[Exception] = None, needs_screenshot=False, is_fallback=False):
        self.method = method
        self.needs_screenshot = needs_screenshot
        self._elements = tuple(elements)
        self._error = error
        self._is_fallback = is_fallback
        self.calls = 0
        self.screenshots: List[Optional[Image.Image]] = []

    def detect(self, app_name, frame, screenshot=None):
        self.calls += 1
        self.screenshots.append(screenshot)
        if self._error is not None:
            raise self._error
        return DetectionResult(
            method=self.method,
            elements=self._elements,
            summary=f"{self.method.value} found {len(self._elements)}",
            suggested_actions=tuple(f"{self.method.value}:{e.label}" for e in self._elements),
            is_fallback=self._is_fallback,
        )


def make_element(label, x, y, method=DetectionMethod.ACCESSIBILITY, kind=ElementKind.BUTTON, confidence=0.9):
    return Element(
        kind=kind,
        label=label,
        normalized=NormalizedPoint(x=x, y=y),
        confidence=confidence,
        source=method,
    )


@pytest.fixture
def frame():
    return WindowFrame(x=100, y=50, width=800, height=600, app_name="Demo")


@pytest.fixture
def bridge_factory() -> Callable[..., FakeBridge]:
    return FakeBridge


@pytest.fixture
def strategy_factory():
    return FakeStrategy


@pytest.fixture
def element_factory():
    return make_element


@pytest.fixture
def capture_counter():
    calls = []

    def capture(frame):
        calls.append(frame)
        return Image.new("RGB", (int(frame.width), int(frame.height)), "white")

    capture.calls = calls
    return capture


@pytest.fixture
def pipeline_factory(frame, capture_counter):
    def build(strategies, frames=None):
        bridge = FakeBridge(frames or [frame])
        resolver = WindowBoundsResolver(bridge, settle_seconds=0)
        return DetectionPipeline(resolver, strategies, capture=capture_counter)

    return build


@pytest.fixture
def session():
    return DetectionSession()
