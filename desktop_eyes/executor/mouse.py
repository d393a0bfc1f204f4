"""
Pointer helpers for moving and clicking at resolved screen positions.

Thin wrapper around pyautogui; the module is imported on first use so the
package stays importable on machines without a display.
"""

from typing import Any, Optional, Tuple

from desktop_eyes.contracts.errors import ActuationFailed

BUTTONS = ("left", "right", "middle")


def load_pyautogui() -> Any:
    try:
        import pyautogui  # type: ignore
    except Exception as exc:  # noqa: BLE001
        raise ActuationFailed(f"pyautogui unavailable: {exc}") from exc
    return pyautogui


class MouseController:
    """Centralized pointer operations; ``backend`` defaults to pyautogui."""

    def __init__(self, backend: Optional[Any] = None) -> None:
        self._backend = backend

    @property
    def backend(self) -> Any:
        if self._backend is None:
            self._backend = load_pyautogui()
        return self._backend

    def _validate(self, x: Any, y: Any) -> Tuple[int, int]:
        if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
            raise ActuationFailed(f"invalid pointer target ({x!r}, {y!r})")
        try:
            width, height = self.backend.size()
        except ActuationFailed:
            raise
        except Exception:
            return int(x), int(y)
        # Multi-monitor layouts can place windows at negative origins.
        if x >= width * 4 or y >= height * 4:
            raise ActuationFailed(f"pointer target ({x}, {y}) is outside the screen")
        return int(x), int(y)

    def move(self, x: Any, y: Any, duration: float = 0.0) -> str:
        tx, ty = self._validate(x, y)
        try:
            self.backend.moveTo(tx, ty, duration=duration)
        except Exception as exc:  # noqa: BLE001
            raise ActuationFailed(f"failed to move pointer to ({tx}, {ty}): {exc}") from exc
        return f"moved to ({tx}, {ty})"

    def click(self, x: Any, y: Any, button: str = "left") -> str:
        button = (button or "left").strip().lower()
        if button not in BUTTONS:
            raise ActuationFailed(f"unsupported mouse button '{button}' (expected one of {', '.join(BUTTONS)})")
        tx, ty = self._validate(x, y)
        try:
            self.backend.click(x=tx, y=ty, button=button)
        except Exception as exc:  # noqa: BLE001
            raise ActuationFailed(f"failed to click at ({tx}, {ty}): {exc}") from exc
        return f"clicked at ({tx}, {ty}) with {button}"
