"""
Error kinds raised across window resolution, detection, and actuation.

Every error carries a stable machine-readable ``code`` so the dispatch boundary
can turn it into a structured payload without string matching.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DesktopEyesError(Exception):
    code = "desktop_eyes_error"

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


class PermissionDenied(DesktopEyesError):
    """Screen capture or accessibility access was refused by the OS."""

    code = "permission_denied"


class WindowNotFound(DesktopEyesError):
    code = "window_not_found"


class BoundsUnresolved(DesktopEyesError):
    """The window exists but never reported a positive width and height."""

    code = "bounds_unresolved"


class DetectorFailed(DesktopEyesError):
    code = "detector_failed"

    def __init__(self, method: str, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(f"{method}: {message}", detail=detail)
        self.method = method


class ParseFailed(DetectorFailed):
    code = "parse_failed"


class DetectionExhausted(DesktopEyesError):
    """A forced detection method failed or found nothing."""

    code = "detection_exhausted"


class ElementIndexOutOfRange(DesktopEyesError):
    code = "element_index_out_of_range"

    def __init__(self, index: int, count: int) -> None:
        if count > 0:
            message = f"Element index {index} out of range (0–{count - 1})"
        else:
            message = f"Element index {index} out of range (no elements detected)"
        super().__init__(message, detail={"index": index, "count": count})
        self.index = index
        self.count = count


class ElementNotFound(DesktopEyesError):
    code = "element_not_found"


class ActuationFailed(DesktopEyesError):
    code = "actuation_failed"


class VisionServiceError(DesktopEyesError):
    """Transport-level failure talking to the vision completion endpoint."""

    code = "vision_service_error"


__all__ = [
    "ActuationFailed",
    "BoundsUnresolved",
    "DesktopEyesError",
    "DetectionExhausted",
    "DetectorFailed",
    "ElementIndexOutOfRange",
    "ElementNotFound",
    "ParseFailed",
    "PermissionDenied",
    "VisionServiceError",
    "WindowNotFound",
]
