from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from desktop_eyes.contracts.errors import DesktopEyesError
from desktop_eyes.executor.tools import DesktopTools
from desktop_eyes.logging_utils import log_event

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Minimal forwarding shell to route tool names to handlers.
    """

    def __init__(self, handlers: Mapping[str, Callable[..., Any]]) -> None:
        self._handlers = dict(handlers or {})

    def get_handler(self, name: str) -> Optional[Callable[..., Any]]:
        return self._handlers.get(name)

    def dispatch(self, name: str, *args, **kwargs) -> Any:
        handler = self.get_handler(name)
        if handler is None:
            return None
        return handler(*args, **kwargs)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    arguments: Dict[str, str] = field(default_factory=dict)
    required: tuple = ()


TOOL_SPECS: List[ToolSpec] = [
    ToolSpec(
        "get_clickable_elements",
        "Detect clickable elements in an application window (accessibility, vision model, OCR, heuristic).",
        {"appName": "string", "forceMethod": "accessibility|ai|ocr|heuristic|auto"},
        ("appName",),
    ),
    ToolSpec(
        "click_element",
        "Click a detected element by 0-based index, optionally from a previous requestId.",
        {"appName": "string", "elementIndex": "integer", "button": "left|right|middle", "requestId": "string"},
        ("appName", "elementIndex"),
    ),
    ToolSpec(
        "move_mouse_to_element",
        "Move the pointer to a detected element without clicking.",
        {"appName": "string", "elementIndex": "integer", "requestId": "string"},
        ("appName", "elementIndex"),
    ),
    ToolSpec(
        "find_and_click_element",
        "Find the first element whose label contains searchText and/or whose type matches, then click it.",
        {"appName": "string", "searchText": "string", "elementType": "string", "button": "left|right|middle"},
        ("appName",),
    ),
    ToolSpec(
        "type_text",
        "Click a detected element and type text into it.",
        {"appName": "string", "elementIndex": "integer", "text": "string", "clearFirst": "boolean", "requestId": "string"},
        ("appName", "elementIndex", "text"),
    ),
    ToolSpec("focus_application", "Bring an application window to the foreground.", {"identifier": "string"}, ("identifier",)),
    ToolSpec("list_applications", "List visible application windows with their bounds."),
    ToolSpec(
        "analyze_window",
        "Run every enabled detection method and merge the results.",
        {"appName": "string", "methods": "array of accessibility|ai|ocr|heuristic"},
        ("appName",),
    ),
    ToolSpec("test_detection_methods", "Report which detection methods are available."),
]


def _bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def _index(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("'elementIndex' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"'elementIndex' must be an integer, got {value!r}") from None


def build_dispatcher(tools: DesktopTools) -> Dispatcher:
    handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
        "get_clickable_elements": lambda a: tools.get_clickable_elements(
            a["appName"], force_method=a.get("forceMethod") or "auto"
        ),
        "click_element": lambda a: tools.click_element(
            a["appName"], _index(a["elementIndex"]), button=a.get("button") or "left", request_id=a.get("requestId")
        ),
        "move_mouse_to_element": lambda a: tools.move_mouse_to_element(
            a["appName"], _index(a["elementIndex"]), request_id=a.get("requestId")
        ),
        "find_and_click_element": lambda a: tools.find_and_click_element(
            a["appName"],
            search_text=a.get("searchText"),
            element_type=a.get("elementType"),
            button=a.get("button") or "left",
        ),
        "type_text": lambda a: tools.type_text(
            a["appName"],
            _index(a["elementIndex"]),
            str(a["text"]),
            clear_first=_bool(a.get("clearFirst", False)),
            request_id=a.get("requestId"),
        ),
        "focus_application": lambda a: tools.focus_application(a["identifier"]),
        "list_applications": lambda a: tools.list_applications(),
        "analyze_window": lambda a: tools.analyze_window(a["appName"], methods=a.get("methods")),
        "test_detection_methods": lambda a: tools.test_detection_methods(),
    }
    return Dispatcher(handlers)


def error_payload(code: str, message: str, detail: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if detail is not None:
        error["detail"] = detail
    return {
        "isError": True,
        "error": error,
        "content": [{"type": "text", "text": f"Error: {message}"}],
    }


def dispatch_tool(
    dispatcher: Dispatcher,
    name: str,
    arguments: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Run a tool by name; every failure comes back as a structured error payload."""
    args = dict(arguments or {})
    spec = next((s for s in TOOL_SPECS if s.name == name), None)
    if spec is None or dispatcher.get_handler(name) is None:
        return error_payload("unknown_tool", f"Unknown tool: {name}")
    missing = [key for key in spec.required if args.get(key) in (None, "")]
    if missing:
        return error_payload("invalid_arguments", f"Missing required argument(s) for {name}: {', '.join(missing)}")

    log_event("tool.call", request_id, {"tool": name, "arguments": args})
    try:
        result = dispatcher.dispatch(name, args)
    except DesktopEyesError as exc:
        logger.info("Tool %s failed: %s", name, exc.message)
        log_event("tool.error", request_id, {"tool": name, **exc.to_dict()})
        return error_payload(exc.code, exc.message, exc.detail)
    except ValueError as exc:
        log_event("tool.error", request_id, {"tool": name, "code": "invalid_arguments", "message": str(exc)})
        return error_payload("invalid_arguments", str(exc))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Tool %s raised unexpectedly", name)
        log_event("tool.error", request_id, {"tool": name, "code": "internal_error", "message": str(exc)})
        return error_payload("internal_error", f"{type(exc).__name__}: {exc}")
    log_event("tool.result", request_id, {"tool": name, "isError": False})
    return result


__all__ = ["Dispatcher", "TOOL_SPECS", "ToolSpec", "build_dispatcher", "dispatch_tool", "error_payload"]
