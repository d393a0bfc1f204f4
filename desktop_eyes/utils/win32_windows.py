"""
Top-level window enumeration, bounds, activation and placement for Windows.

All entry points degrade to empty results when ``ctypes.windll`` is missing so
callers (and tests) on other platforms can import this module.
"""

from __future__ import annotations

import ctypes
import difflib
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

try:
    from ctypes import wintypes
except Exception:  # pragma: no cover - non-Windows interpreters
    wintypes = None  # type: ignore

try:
    import psutil
except Exception:  # pragma: no cover - optional dependency
    psutil = None  # type: ignore

from desktop_eyes.contracts.elements import WindowFrame

logger = logging.getLogger(__name__)

_windll = getattr(ctypes, "windll", None)
user32 = getattr(_windll, "user32", None)
kernel32 = getattr(_windll, "kernel32", None)
try:
    dwmapi = _windll.dwmapi if _windll is not None else None
except Exception:  # pragma: no cover - dwmapi may be missing
    dwmapi = None  # type: ignore

DWMWA_CLOAKED = 14
GW_OWNER = 4
SW_RESTORE = 9
SW_SHOWMAXIMIZED = 3
SW_SHOW = 5
VK_MENU = 0x12
HWND_TOPMOST = -1
HWND_NOTOPMOST = -2
SWP_NOSIZE = 0x0001
SWP_NOMOVE = 0x0002
SWP_NOZORDER = 0x0004
SWP_NOACTIVATE = 0x0010
SWP_SHOWWINDOW = 0x0040


@dataclass(frozen=True)
class WindowInfo:
    hwnd: int
    title: str
    pid: int
    class_name: str
    process_name: str
    rect: Tuple[int, int, int, int]
    is_visible: bool = True
    is_minimized: bool = False

    def to_frame(self) -> WindowFrame:
        left, top, right, bottom = self.rect
        return WindowFrame(
            x=float(left),
            y=float(top),
            width=float(max(0, right - left)),
            height=float(max(0, bottom - top)),
            app_name=self.title or self.process_name,
        )


def _available() -> bool:
    return user32 is not None and wintypes is not None


def _is_cloaked(hwnd: int) -> bool:
    if not dwmapi:
        return False
    cloaked = wintypes.DWORD()
    try:
        res = dwmapi.DwmGetWindowAttribute(
            wintypes.HWND(hwnd),
            wintypes.DWORD(DWMWA_CLOAKED),
            ctypes.byref(cloaked),
            ctypes.sizeof(cloaked),
        )
        if res == 0:
            return cloaked.value != 0
    except Exception:
        return False
    return False


def _get_window_title(hwnd: int) -> str:
    length = user32.GetWindowTextLengthW(wintypes.HWND(hwnd))
    if length == 0:
        return ""
    buffer = ctypes.create_unicode_buffer(length + 1)
    user32.GetWindowTextW(wintypes.HWND(hwnd), buffer, length + 1)
    return buffer.value.strip()


def _get_class_name(hwnd: int) -> str:
    buffer = ctypes.create_unicode_buffer(256)
    try:
        if user32.GetClassNameW(wintypes.HWND(hwnd), buffer, 255) > 0:
            return buffer.value.strip()
    except Exception:
        pass
    return ""


def _get_process_name(pid: int) -> str:
    if pid <= 0 or psutil is None:
        return ""
    try:
        return psutil.Process(pid).name() or ""
    except Exception:
        return ""


def get_window_rect(hwnd: int) -> Tuple[int, int, int, int]:
    if not _available():
        return (0, 0, 0, 0)
    rect = wintypes.RECT()
    try:
        if user32.GetWindowRect(wintypes.HWND(hwnd), ctypes.byref(rect)):
            return (rect.left, rect.top, rect.right, rect.bottom)
    except Exception:
        pass
    return (0, 0, 0, 0)


def enum_top_windows() -> List[WindowInfo]:
    """Visible, unowned, uncloaked top-level windows with a title."""
    if not _available():
        return []
    windows: List[WindowInfo] = []
    EnumWindowsProc = ctypes.WINFUNCTYPE(ctypes.c_bool, wintypes.HWND, wintypes.LPARAM)

    @EnumWindowsProc
    def _callback(hwnd, _lparam):
        title = _get_window_title(hwnd)
        if not title:
            return True
        if user32.GetWindow(hwnd, GW_OWNER):
            return True
        is_visible = bool(user32.IsWindowVisible(hwnd))
        try:
            is_minimized = bool(user32.IsIconic(hwnd))
        except Exception:
            is_minimized = False
        if not is_visible and not is_minimized:
            return True
        if _is_cloaked(hwnd):
            return True
        pid_out = wintypes.DWORD()
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid_out))
        pid = int(pid_out.value)
        windows.append(
            WindowInfo(
                hwnd=int(hwnd),
                title=title,
                pid=pid,
                class_name=_get_class_name(hwnd),
                process_name=_get_process_name(pid),
                rect=get_window_rect(hwnd),
                is_visible=is_visible,
                is_minimized=is_minimized,
            )
        )
        return True

    try:
        user32.EnumWindows(_callback, 0)
    except Exception as exc:  # noqa: BLE001
        logger.warning("EnumWindows failed: %s", exc)
    return windows


def _score_window(query: str, win: WindowInfo) -> float:
    query_l = query.lower()
    best = 0.0
    for field in (win.title, win.class_name, win.process_name):
        if not field:
            continue
        field_l = field.lower()
        if query_l == field_l or query_l == field_l.rsplit(".", 1)[0]:
            return 2.0
        if query_l in field_l:
            best = max(best, 1.0 + len(query_l) / max(len(field_l), 1))
            continue
        best = max(best, difflib.SequenceMatcher(None, query_l, field_l).ratio())
    return best


def find_window(query: str, windows: Optional[List[WindowInfo]] = None, min_ratio: float = 0.6) -> Optional[WindowInfo]:
    """
    Best window for ``query`` by title, class name or process name.

    Substring hits always outrank fuzzy matches; fuzzy matches below
    ``min_ratio`` are rejected.
    """
    query = (query or "").strip()
    if not query:
        return None
    candidates = windows if windows is not None else enum_top_windows()
    scored = [(_score_window(query, win), win) for win in candidates]
    scored = [item for item in scored if item[0] >= min_ratio]
    if not scored:
        return None
    # Prefer visible, non-minimized windows on ties.
    scored.sort(key=lambda item: (item[0], item[1].is_visible, not item[1].is_minimized), reverse=True)
    return scored[0][1]


def get_foreground_info() -> Dict[str, Optional[int]]:
    info: Dict[str, Optional[int]] = {"hwnd": None, "pid": None}
    if not _available():
        return info
    try:
        fg = user32.GetForegroundWindow()
        info["hwnd"] = int(fg) if fg else None
    except Exception:
        fg = None
    if fg:
        try:
            pid_out = wintypes.DWORD()
            user32.GetWindowThreadProcessId(wintypes.HWND(fg), ctypes.byref(pid_out))
            info["pid"] = int(pid_out.value)
        except Exception:
            pass
    return info


def _topmost_bounce(hwnd: int) -> None:
    flags = SWP_NOMOVE | SWP_NOSIZE | SWP_SHOWWINDOW | SWP_NOACTIVATE
    try:
        user32.SetWindowPos(wintypes.HWND(hwnd), wintypes.HWND(HWND_TOPMOST), 0, 0, 0, 0, flags)
        user32.SetWindowPos(wintypes.HWND(hwnd), wintypes.HWND(HWND_NOTOPMOST), 0, 0, 0, 0, flags)
    except Exception:
        pass


def ensure_foreground(hwnd: int, timeout_ms: int = 1200) -> Dict[str, object]:
    """
    Try to force ``hwnd`` to the foreground: restore, topmost bounce, thread
    input attach, then SetForegroundWindow with one ALT nudge retry.
    """
    start = time.perf_counter()
    result: Dict[str, object] = {"ok": False, "attempts": 0, "reason": None}
    if not _available():
        result["reason"] = "win32_unavailable"
        return result
    if not hwnd or int(hwnd) <= 0:
        result["reason"] = "invalid_hwnd"
        return result

    hwnd = int(hwnd)
    deadline = start + timeout_ms / 1000.0
    alt_used = False
    while time.perf_counter() < deadline:
        result["attempts"] = int(result["attempts"]) + 1
        fg_tid = tgt_tid = None
        cur_tid = kernel32.GetCurrentThreadId()
        try:
            if user32.IsIconic(wintypes.HWND(hwnd)):
                user32.ShowWindow(wintypes.HWND(hwnd), SW_RESTORE)
            elif user32.IsZoomed(wintypes.HWND(hwnd)):
                user32.ShowWindow(wintypes.HWND(hwnd), SW_SHOWMAXIMIZED)
            else:
                user32.ShowWindow(wintypes.HWND(hwnd), SW_SHOW)
            _topmost_bounce(hwnd)

            fg_tid = user32.GetWindowThreadProcessId(user32.GetForegroundWindow(), None)
            tgt_tid = user32.GetWindowThreadProcessId(wintypes.HWND(hwnd), None)
            if fg_tid:
                user32.AttachThreadInput(cur_tid, fg_tid, True)
            if tgt_tid:
                user32.AttachThreadInput(cur_tid, tgt_tid, True)
            user32.BringWindowToTop(wintypes.HWND(hwnd))
            user32.SetForegroundWindow(wintypes.HWND(hwnd))
            if get_foreground_info().get("hwnd") == hwnd:
                result["ok"] = True
                result["reason"] = "foreground_acquired"
                break

            if not alt_used:
                alt_used = True
                user32.keybd_event(VK_MENU, 0, 0, 0)
                user32.keybd_event(VK_MENU, 0, 2, 0)
                user32.SetForegroundWindow(wintypes.HWND(hwnd))
                if get_foreground_info().get("hwnd") == hwnd:
                    result["ok"] = True
                    result["reason"] = "foreground_acquired_alt"
                    break
        except Exception as exc:  # noqa: BLE001
            result["reason"] = f"error:{exc}"
        finally:
            try:
                if fg_tid:
                    user32.AttachThreadInput(cur_tid, fg_tid, False)
                if tgt_tid:
                    user32.AttachThreadInput(cur_tid, tgt_tid, False)
            except Exception:
                pass

    if not result["ok"] and result["reason"] is None:
        result["reason"] = "foreground_not_acquired"
    result["duration_ms"] = (time.perf_counter() - start) * 1000.0
    return result


def move_window(hwnd: int, x: int, y: int) -> bool:
    """Move ``hwnd`` so its top-left corner sits at ``(x, y)``; size is kept."""
    if not _available():
        return False
    try:
        return bool(
            user32.SetWindowPos(
                wintypes.HWND(hwnd),
                None,
                int(x),
                int(y),
                0,
                0,
                SWP_NOSIZE | SWP_NOZORDER | SWP_SHOWWINDOW,
            )
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("SetWindowPos failed for hwnd=%s: %s", hwnd, exc)
        return False


class Win32WindowBridge:
    """WindowBridge backed by user32; window handles are the hwnd ints."""

    def find_window(self, app_name: str) -> Optional[WindowInfo]:
        return find_window(app_name)

    def get_bounds(self, window: WindowInfo) -> WindowFrame:
        left, top, right, bottom = get_window_rect(window.hwnd)
        return WindowFrame(
            x=float(left),
            y=float(top),
            width=float(max(0, right - left)),
            height=float(max(0, bottom - top)),
            app_name=window.title or window.process_name,
        )

    def activate(self, window: WindowInfo) -> bool:
        try:
            user32.AllowSetForegroundWindow(window.pid if window.pid > 0 else -1)
        except Exception:
            pass
        return bool(ensure_foreground(window.hwnd).get("ok"))

    def move_to(self, window: WindowInfo, x: int, y: int) -> bool:
        return move_window(window.hwnd, x, y)

    def list_windows(self) -> List[WindowInfo]:
        return enum_top_windows()


__all__ = [
    "WindowInfo",
    "Win32WindowBridge",
    "ensure_foreground",
    "enum_top_windows",
    "find_window",
    "get_window_rect",
    "move_window",
]
