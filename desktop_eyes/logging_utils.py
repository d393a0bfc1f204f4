from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Iterable, Optional

# Structured event logger configured in logging_setup.
event_logger = logging.getLogger("desktop_eyes.events")

# Keystroke payloads can carry credentials; only their length is logged.
_TYPED_TEXT_KEYS = {"text", "password"}


def generate_request_id() -> str:
    """Return a short, collision-resistant request id."""
    return uuid.uuid4().hex


def _truncate(value: str, max_len: int = 2000) -> str:
    if len(value) <= max_len:
        return value
    return f"{value[:max_len]}...<truncated {len(value) - max_len} chars>"


def _sanitize_obj(obj: Any, max_len: int = 2000, keep_full: Iterable[str] | None = None) -> Any:
    keep_full = set(keep_full or [])
    if isinstance(obj, dict):
        sanitized: Dict[str, Any] = {}
        for key, val in obj.items():
            if key in {"screenshot_base64", "image_base64", "image_url"}:
                sanitized[key] = "<redacted:image>"
                continue
            if key in _TYPED_TEXT_KEYS:
                sanitized[key] = f"<redacted:{len(str(val))} chars>"
                continue
            if key == "raw_reply":
                sanitized[key] = _truncate(str(val), max_len)
                continue
            if key in keep_full:
                sanitized[key] = val
                continue
            sanitized[key] = _sanitize_obj(val, max_len=max_len, keep_full=keep_full)
        return sanitized
    if isinstance(obj, (list, tuple)):
        return [_sanitize_obj(item, max_len=max_len, keep_full=keep_full) for item in list(obj)[:50]]
    if isinstance(obj, str):
        return _truncate(obj, max_len=max_len)
    return obj


def sanitize_payload(payload: Dict[str, Any], keep_full: Iterable[str] | None = None) -> Dict[str, Any]:
    """Return a sanitized shallow copy safe for logging."""
    try:
        return dict(_sanitize_obj(payload, keep_full=keep_full or []))
    except Exception:  # noqa: BLE001
        return {"error": "failed_to_sanitize"}


def summarize_outcome(outcome: Any) -> Dict[str, Any]:
    """Compact, log-friendly view of a PipelineOutcome."""
    if outcome is None:
        return {"present": False}
    elements = list(getattr(outcome, "elements", []) or [])
    chosen = getattr(outcome, "chosen_method", None)
    attempts = [
        {"method": getattr(a.method, "value", a.method), "status": a.status, "reason": a.reason}
        for a in (getattr(outcome, "attempts", None) or [])
    ]
    return {
        "present": True,
        "chosen_method": getattr(chosen, "value", chosen),
        "element_count": len(elements),
        "labels_preview": [e.display_name for e in elements[:10]],
        "attempts": attempts,
        "is_fallback": bool(getattr(outcome, "is_fallback", False)),
    }


def log_event(event: str, request_id: Optional[str], payload: Dict[str, Any] | None = None) -> None:
    """Log a structured event as JSON; never raise."""
    body: Dict[str, Any] = {"event": event, "request_id": request_id}
    if payload:
        body.update(sanitize_payload(payload))
    try:
        event_logger.info(json.dumps(body, ensure_ascii=True, default=str))
    except Exception:  # noqa: BLE001
        # Fallback to best-effort string logging.
        event_logger.info(f"{event} {request_id} {body}")
