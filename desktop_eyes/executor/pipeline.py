"""
Priority waterfall over detection strategies.

Auto mode walks accessibility, vision model, OCR and heuristic in order and
stops at the first strategy that returns at least one element. A strategy
that raises or returns nothing is recorded in ``attempts`` and skipped.
Heuristic never fails, so auto mode always ends with elements unless the
window itself cannot be resolved.

A forced method runs only that strategy; failure or an empty result raises
DetectionExhausted rather than falling through.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from PIL import Image

from desktop_eyes.contracts.elements import (
    PRIORITY_ORDER,
    DetectionMethod,
    DetectionResult,
    PipelineOutcome,
    StrategyAttempt,
    WindowFrame,
)
from desktop_eyes.contracts.errors import DetectionExhausted, PermissionDenied
from desktop_eyes.contracts.report import screen_action
from desktop_eyes.detectors.base import DetectorStrategy, dedupe_actions
from desktop_eyes.detectors.heuristic import HeuristicDetector
from desktop_eyes.executor.combiner import combine, combine_actions
from desktop_eyes.executor.session import DetectionSession
from desktop_eyes.logging_utils import generate_request_id, log_event, summarize_outcome
from desktop_eyes.vision.coordinates import stamp_elements
from desktop_eyes.vision.screenshot import capture_window
from desktop_eyes.vision.window_bounds import WindowBoundsResolver

logger = logging.getLogger(__name__)

AUTO = "auto"


def parse_method(method: Optional[str]) -> Optional[DetectionMethod]:
    """``None`` for auto; raises ValueError for unknown names."""
    text = str(method or AUTO).strip().lower()
    if text == AUTO:
        return None
    try:
        return DetectionMethod(text)
    except ValueError:
        allowed = ", ".join([AUTO] + [m.value for m in DetectionMethod])
        raise ValueError(f"Unknown detection method '{method}' (expected one of: {allowed})") from None


class _LazyScreenshot:
    """Captures the frame at most once per run, on first use."""

    def __init__(self, frame: WindowFrame, capture: Callable[[WindowFrame], Image.Image]) -> None:
        self._frame = frame
        self._capture = capture
        self._image: Optional[Image.Image] = None

    @property
    def taken(self) -> bool:
        return self._image is not None

    def get(self) -> Image.Image:
        if self._image is None:
            self._image = self._capture(self._frame)
        return self._image


class DetectionPipeline:
    def __init__(
        self,
        resolver: WindowBoundsResolver,
        strategies: Sequence[DetectorStrategy],
        capture: Callable[[WindowFrame], Image.Image] = capture_window,
    ) -> None:
        self.resolver = resolver
        self.capture = capture
        self._strategies: Dict[DetectionMethod, DetectorStrategy] = {s.method: s for s in strategies}
        if DetectionMethod.HEURISTIC not in self._strategies:
            self._strategies[DetectionMethod.HEURISTIC] = HeuristicDetector()

    @property
    def strategies(self) -> List[DetectorStrategy]:
        return [self._strategies[m] for m in PRIORITY_ORDER if m in self._strategies]

    def strategy(self, method: DetectionMethod) -> Optional[DetectorStrategy]:
        return self._strategies.get(method)

    def _attempt(
        self,
        strategy: DetectorStrategy,
        app_name: str,
        frame: WindowFrame,
        screenshot: _LazyScreenshot,
        request_id: str,
    ) -> Tuple[Optional[DetectionResult], StrategyAttempt]:
        method = strategy.method
        try:
            image = screenshot.get() if strategy.needs_screenshot else None
            result = strategy.detect(app_name, frame, image)
        except PermissionDenied:
            raise
        except Exception as exc:  # noqa: BLE001
            reason = str(exc) or type(exc).__name__
            logger.warning("Detector %s failed for %s: %s", method.value, app_name, reason)
            attempt = StrategyAttempt(method=method, status="failed", reason=reason)
            log_event("pipeline.attempt", request_id, attempt.model_dump(mode="json"))
            return None, attempt

        status = "ok" if result.elements else "empty"
        attempt = StrategyAttempt(
            method=method,
            status=status,
            element_count=len(result.elements),
            reason="fallback" if result.is_fallback else None,
        )
        log_event("pipeline.attempt", request_id, attempt.model_dump(mode="json"))
        return result, attempt

    def run(
        self,
        session: DetectionSession,
        app_name: str,
        method: Optional[str] = AUTO,
        request_id: Optional[str] = None,
    ) -> PipelineOutcome:
        forced = parse_method(method)
        request_id = request_id or generate_request_id()
        frame = self.resolver.resolve(app_name, request_id=request_id)
        session.focus(app_name, frame)
        screenshot = _LazyScreenshot(frame, self.capture)

        if forced is not None:
            strategy = self._strategies.get(forced)
            if strategy is None:
                raise DetectionExhausted(f"{forced.value} detection is not enabled")
            chain = [strategy]
        else:
            chain = self.strategies

        attempts: List[StrategyAttempt] = []
        winner: Optional[DetectionResult] = None
        for strategy in chain:
            result, attempt = self._attempt(strategy, app_name, frame, screenshot, request_id)
            attempts.append(attempt)
            if result is not None and result.elements:
                winner = result
                break

        if winner is None:
            # Only reachable in forced mode: heuristic terminates the auto chain.
            last = attempts[-1] if attempts else None
            detail = last.reason if last and last.reason else (last.status if last else "not run")
            label = forced.value if forced else AUTO
            raise DetectionExhausted(
                f"{label} detection found no elements for '{app_name}' ({detail})",
                detail={"attempts": [a.model_dump(mode="json") for a in attempts]},
            )

        elements = tuple(stamp_elements(winner.elements, frame))
        actions = dedupe_actions([screen_action(e) for e in elements] + list(winner.suggested_actions))
        outcome = PipelineOutcome(
            chosen_method=winner.method,
            elements=elements,
            frame=frame,
            summary=winner.summary,
            suggested_actions=actions,
            attempts=tuple(attempts),
            methods_used=(winner.method,),
            is_fallback=winner.is_fallback,
            request_id=request_id,
        )
        session.record(outcome)
        log_event(
            "pipeline.outcome",
            request_id,
            {"app_name": app_name, "forced": forced.value if forced else None, "screenshot_taken": screenshot.taken, **summarize_outcome(outcome)},
        )
        return outcome

    def run_all(
        self,
        session: DetectionSession,
        app_name: str,
        methods: Optional[Sequence[str]] = None,
        request_id: Optional[str] = None,
    ) -> PipelineOutcome:
        """
        Run every selected strategy (fail-soft) and merge their results.

        Without ``methods`` all enabled strategies except heuristic run, and
        heuristic is used only when none of them found anything.
        """
        request_id = request_id or generate_request_id()
        if isinstance(methods, str):
            methods = [methods]
        wanted = {parse_method(name) for name in methods or ()}
        # "auto" anywhere in the list selects the default set.
        explicit = bool(wanted) and None not in wanted
        if explicit:
            chain = [s for s in self.strategies if s.method in wanted]
        else:
            chain = [s for s in self.strategies if s.method != DetectionMethod.HEURISTIC]

        frame = self.resolver.resolve(app_name, request_id=request_id)
        session.focus(app_name, frame)
        screenshot = _LazyScreenshot(frame, self.capture)

        attempts: List[StrategyAttempt] = []
        results: List[DetectionResult] = []
        for strategy in chain:
            result, attempt = self._attempt(strategy, app_name, frame, screenshot, request_id)
            attempts.append(attempt)
            if result is not None and result.elements:
                results.append(result)

        if not results and not explicit:
            heuristic = self._strategies[DetectionMethod.HEURISTIC]
            result, attempt = self._attempt(heuristic, app_name, frame, screenshot, request_id)
            attempts.append(attempt)
            if result is not None and result.elements:
                results.append(result)

        elements = tuple(stamp_elements(combine(results), frame))
        actions = dedupe_actions([screen_action(e) for e in elements] + combine_actions(results))
        used = tuple(m for m in PRIORITY_ORDER if any(r.method == m for r in results))
        outcome = PipelineOutcome(
            chosen_method=used[0] if used else None,
            elements=elements,
            frame=frame,
            summary=" | ".join(r.summary for r in results if r.summary),
            suggested_actions=actions,
            attempts=tuple(attempts),
            methods_used=used,
            is_fallback=any(r.is_fallback for r in results),
            request_id=request_id,
        )
        session.record(outcome)
        log_event("pipeline.analysis", request_id, {"app_name": app_name, **summarize_outcome(outcome)})
        return outcome


__all__ = ["AUTO", "DetectionPipeline", "parse_method"]
