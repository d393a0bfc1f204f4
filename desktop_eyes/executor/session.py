from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from desktop_eyes.contracts.elements import Element, PipelineOutcome, WindowFrame
from desktop_eyes.contracts.errors import ElementIndexOutOfRange, ElementNotFound


class ElementRegistry:
    """Bounded LRU of recent detection outcomes keyed by request id."""

    def __init__(self, capacity: int = 32) -> None:
        self.capacity = max(1, int(capacity))
        self._outcomes: "OrderedDict[str, PipelineOutcome]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._outcomes)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._outcomes

    def remember(self, outcome: PipelineOutcome) -> None:
        if not outcome.request_id:
            return
        self._outcomes[outcome.request_id] = outcome
        self._outcomes.move_to_end(outcome.request_id)
        while len(self._outcomes) > self.capacity:
            self._outcomes.popitem(last=False)

    def get(self, request_id: str) -> PipelineOutcome:
        try:
            outcome = self._outcomes[request_id]
        except KeyError:
            raise ElementNotFound(f"No stored detection for request id '{request_id}'") from None
        self._outcomes.move_to_end(request_id)
        return outcome

    def lookup(self, request_id: str, index: int) -> Element:
        return pick_element(self.get(request_id), index)


def pick_element(outcome: PipelineOutcome, index: int) -> Element:
    count = len(outcome.elements)
    if index < 0 or index >= count:
        raise ElementIndexOutOfRange(index, count)
    return outcome.elements[index]


@dataclass
class DetectionSession:
    """
    Per-caller detection state threaded through pipeline and tool calls.

    ``current_app`` and ``frame`` track the last focused application; the
    frame is informational only and is re-resolved before every actuation.
    """

    registry: ElementRegistry = field(default_factory=ElementRegistry)
    current_app: Optional[str] = None
    frame: Optional[WindowFrame] = None
    last_outcome: Optional[PipelineOutcome] = None

    def focus(self, app_name: str, frame: WindowFrame) -> None:
        self.current_app = app_name
        self.frame = frame

    def record(self, outcome: PipelineOutcome) -> None:
        self.last_outcome = outcome
        self.registry.remember(outcome)


__all__ = ["DetectionSession", "ElementRegistry", "pick_element"]
