"""
Plain-text rendering of detection outcomes for tool responses.

The text is output only; callers that need elements back use the structured
outcome stored in the session registry.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

from desktop_eyes.contracts.elements import Element, PipelineOutcome, WindowFrame


def _num(value: float) -> str:
    return f"{value:g}"


def screen_action(element: Element) -> str:
    """Suggested click line quoting both the screen and normalized position."""
    screen = element.screen
    sx = _num(screen.x) if screen else "?"
    sy = _num(screen.y) if screen else "?"
    return (
        f'Click "{element.display_name}" at screen ({sx}, {sy}) or normalized '
        f"({element.normalized.x:.3f}, {element.normalized.y:.3f})"
    )


def element_line(index: int, element: Element) -> str:
    screen = element.screen
    screen_txt = f"({_num(screen.x)}, {_num(screen.y)})" if screen else "(?, ?)"
    return (
        f'{index + 1}. "{element.display_name}" ({element.kind.value}) - '
        f"Screen: {screen_txt} | "
        f"Normalized: ({element.normalized.x:.3f}, {element.normalized.y:.3f}) | "
        f"Confidence: {element.confidence:g} | Method: {element.source.value}"
    )


def _frame_line(frame: WindowFrame) -> str:
    return f"Window bounds: {frame.describe()}"


def render_outcome(app_name: str, outcome: PipelineOutcome) -> str:
    method = outcome.chosen_method.value if outcome.chosen_method else "none"
    lines: List[str] = [
        f"Clickable Elements for {app_name} ({method} method):",
        "",
        _frame_line(outcome.frame),
        "",
        f"Found {len(outcome.elements)} clickable elements:",
        "",
    ]
    lines.extend(element_line(i, el) for i, el in enumerate(outcome.elements))
    if outcome.is_fallback:
        lines.extend(["", "Note: the vision model was unavailable; positions are fallback guesses."])
    lines.extend(["", "Suggested Actions:"])
    lines.extend(outcome.suggested_actions)
    if outcome.request_id:
        lines.extend(["", f"Request ID: {outcome.request_id}"])
    return "\n".join(lines)


def render_analysis(app_name: str, outcome: PipelineOutcome) -> str:
    used = ", ".join(m.value for m in outcome.methods_used) or "none"
    lines: List[str] = [
        f"Window Analysis for {app_name}:",
        "",
        _frame_line(outcome.frame),
        f"Methods used: {used}",
    ]
    for attempt in outcome.attempts:
        reason = f" ({attempt.reason})" if attempt.reason else ""
        lines.append(f"  - {attempt.method.value}: {attempt.status}, {attempt.element_count} elements{reason}")
    lines.extend(["", f"Combined {len(outcome.elements)} unique elements:", ""])
    lines.extend(element_line(i, el) for i, el in enumerate(outcome.elements))
    lines.extend(["", "Suggested Actions:"])
    lines.extend(outcome.suggested_actions)
    if outcome.request_id:
        lines.extend(["", f"Request ID: {outcome.request_id}"])
    return "\n".join(lines)


def render_applications(apps: Sequence[Dict[str, Any]]) -> str:
    lines = [f"Running applications ({len(apps)}):", ""]
    for app in apps:
        frame: WindowFrame = app["frame"]
        name = app.get("name") or app.get("title") or "unknown"
        title = app.get("title") or ""
        pid = app.get("pid")
        lines.append(f'- {name}: "{title}" (PID: {pid}) - {frame.describe()}')
    return "\n".join(lines)


def render_availability(rows: Iterable[Dict[str, Any]]) -> str:
    lines = ["Detection Methods Test Results:", ""]
    for row in rows:
        mark = "available" if row.get("available") else "unavailable"
        detail = f" - {row['detail']}" if row.get("detail") else ""
        lines.append(f"{row['method']}: {mark}{detail}")
    return "\n".join(lines)


__all__ = [
    "element_line",
    "render_analysis",
    "render_applications",
    "render_availability",
    "render_outcome",
    "screen_action",
]
