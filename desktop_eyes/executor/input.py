"""
Keyboard helpers for typing into a focused element.
"""

import time
from typing import Any, Optional

from desktop_eyes.contracts.errors import ActuationFailed
from desktop_eyes.executor.mouse import load_pyautogui


class KeyboardController:
    def __init__(self, backend: Optional[Any] = None, interval: float = 0.02) -> None:
        self._backend = backend
        self.interval = interval

    @property
    def backend(self) -> Any:
        if self._backend is None:
            self._backend = load_pyautogui()
        return self._backend

    def clear_field(self) -> None:
        """Select all and delete the current field contents."""
        try:
            self.backend.hotkey("ctrl", "a")
            time.sleep(0.05)
            self.backend.press("delete")
        except Exception as exc:  # noqa: BLE001
            raise ActuationFailed(f"failed to clear field: {exc}") from exc

    def type_text(self, text: str) -> str:
        if not isinstance(text, str):
            raise ActuationFailed("'text' must be a string")
        if not text:
            return "typed 0 characters"
        try:
            self.backend.typewrite(text, interval=self.interval)
        except Exception as exc:  # noqa: BLE001
            raise ActuationFailed(f"failed to type text: {exc}") from exc
        return f"typed {len(text)} characters"
