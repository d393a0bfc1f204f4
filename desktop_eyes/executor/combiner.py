from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from desktop_eyes.contracts.elements import PRIORITY_ORDER, DetectionResult, Element


def _priority(result: DetectionResult) -> int:
    try:
        return PRIORITY_ORDER.index(result.method)
    except ValueError:
        return len(PRIORITY_ORDER)


def element_key(element: Element) -> Tuple[str, str, float, float]:
    return (
        element.kind.value,
        element.label or "",
        round(element.normalized.x, 2),
        round(element.normalized.y, 2),
    )


def combine(results: Iterable[DetectionResult]) -> List[Element]:
    """
    Flatten results in strategy priority order, keeping the first element seen
    for each (kind, label, rounded position) key.
    """
    ordered = sorted(results, key=_priority)
    seen: Dict[Tuple[str, str, float, float], Element] = {}
    for result in ordered:
        for element in result.elements:
            seen.setdefault(element_key(element), element)
    return list(seen.values())


def combine_actions(results: Iterable[DetectionResult]) -> List[str]:
    actions: List[str] = []
    seen = set()
    for result in sorted(results, key=_priority):
        for action in result.suggested_actions:
            if action not in seen:
                seen.add(action)
                actions.append(action)
    return actions


__all__ = ["combine", "combine_actions", "element_key"]
