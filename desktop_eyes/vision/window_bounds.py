"""
Window frame resolution with an escalating recovery ladder.

1. query the current bounds;
2. if empty, force-activate the window and query again;
3. if still empty, move the window to a known-good primary-display origin
   and query again;
4. accept only a strictly positive width and height.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from desktop_eyes.config import DEFAULT_PRIMARY_ORIGIN
from desktop_eyes.contracts.elements import WindowFrame
from desktop_eyes.contracts.errors import BoundsUnresolved, PermissionDenied, WindowNotFound
from desktop_eyes.logging_utils import log_event

logger = logging.getLogger(__name__)


class WindowBridge(Protocol):
    def find_window(self, app_name: str) -> Optional[Any]: ...

    def get_bounds(self, window: Any) -> WindowFrame: ...

    def activate(self, window: Any) -> bool: ...

    def move_to(self, window: Any, x: int, y: int) -> bool: ...

    def list_windows(self) -> List[Any]: ...


class WindowBoundsResolver:
    def __init__(
        self,
        bridge: WindowBridge,
        primary_origin: Tuple[int, int] = DEFAULT_PRIMARY_ORIGIN,
        settle_seconds: float = 0.3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.bridge = bridge
        self.primary_origin = primary_origin
        self.settle_seconds = settle_seconds
        self._sleep = sleep

    def _settle(self) -> None:
        if self.settle_seconds > 0:
            self._sleep(self.settle_seconds)

    def _query(self, window: Any, app_name: str) -> WindowFrame:
        try:
            frame = self.bridge.get_bounds(window)
        except PermissionError as exc:
            raise PermissionDenied(f"Window bounds for '{app_name}' are not accessible: {exc}") from exc
        if frame.app_name is None:
            frame = frame.model_copy(update={"app_name": app_name})
        return frame

    def find(self, app_name: str) -> Any:
        try:
            window = self.bridge.find_window(app_name)
        except PermissionError as exc:
            raise PermissionDenied(f"Window list is not accessible: {exc}") from exc
        if window is None:
            raise WindowNotFound(f"Application '{app_name}' not found or has no windows")
        return window

    def activate(self, app_name: str) -> Any:
        """Bring the app's window to the foreground and return its handle."""
        window = self.find(app_name)
        try:
            self.bridge.activate(window)
        except PermissionError as exc:
            raise PermissionDenied(f"Cannot activate '{app_name}': {exc}") from exc
        self._settle()
        return window

    def resolve(self, app_name: str, request_id: Optional[str] = None) -> WindowFrame:
        window = self.find(app_name)
        steps: List[str] = ["query"]

        frame = self._query(window, app_name)
        if not frame.is_resolved:
            steps.append("activate")
            try:
                self.bridge.activate(window)
            except PermissionError as exc:
                raise PermissionDenied(f"Cannot activate '{app_name}': {exc}") from exc
            self._settle()
            frame = self._query(window, app_name)

        if not frame.is_resolved:
            steps.append("move")
            x, y = self.primary_origin
            if self.bridge.move_to(window, x, y):
                self._settle()
            frame = self._query(window, app_name)

        log_event(
            "window.bounds",
            request_id,
            {"app_name": app_name, "steps": steps, "frame": frame.model_dump(), "resolved": frame.is_resolved},
        )
        if not frame.is_resolved:
            raise BoundsUnresolved(
                f"Could not get valid window bounds for '{app_name}' (got {frame.describe()})",
                detail={"steps": steps},
            )
        return frame

    def list_applications(self) -> List[Dict[str, Any]]:
        """Every visible top-level window whose frame is usable."""
        apps: List[Dict[str, Any]] = []
        for window in self.bridge.list_windows():
            try:
                frame = self.bridge.get_bounds(window)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Skipping window %r: %s", window, exc)
                continue
            if not frame.is_resolved:
                continue
            apps.append(
                {
                    "name": getattr(window, "process_name", "") or getattr(window, "title", ""),
                    "title": getattr(window, "title", ""),
                    "pid": getattr(window, "pid", None),
                    "frame": frame,
                }
            )
        return apps


__all__ = ["WindowBoundsResolver", "WindowBridge"]
