"""
Pairs the latest gesture and expression detections into one sign.

Whatever is pending in each slot is fused as soon as both are filled;
both slots are then cleared. There is no time-window check between the
two detections.
"""

import logging
import threading
from typing import Callable, Iterable, Optional

from core.events import Channel
from core.types import DetectionResult, DetectionType, FusionResult, clamp_confidence

logger = logging.getLogger(__name__)


class FusionEngine:
    """Gesture + expression pairing with a confidence gate on the output.

    Args:
        smoother: Optional GrammarSmoother applied to every fused pair
        confidence_threshold: Minimum smoothed confidence forwarded to sinks
        subscribers: Handles attached to the output channel
    """

    def __init__(
        self,
        smoother=None,
        confidence_threshold: float = 0.7,
        subscribers: Iterable[Callable[[FusionResult], None]] = (),
    ):
        self._smoother = smoother
        self._threshold = confidence_threshold
        self._lock = threading.Lock()
        self._last_gesture: Optional[DetectionResult] = None
        self._last_expression: Optional[DetectionResult] = None
        self._fused_count = 0
        self._forwarded_count = 0
        self.output: Channel[FusionResult] = Channel("fusion", subscribers)

        logger.info("FusionEngine initialized (threshold=%.2f)", confidence_threshold)

    def submit(self, result: DetectionResult) -> Optional[FusionResult]:
        """Store a detection in its slot and fuse if both slots are filled.

        Returns:
            The smoothed FusionResult when a pair fired (even if it was
            below the gate), otherwise None.
        """
        if result.type is DetectionType.GESTURE:
            return self.on_gesture(result)
        return self.on_expression(result)

    def on_gesture(self, result: DetectionResult) -> Optional[FusionResult]:
        with self._lock:
            self._last_gesture = result
            pair = self._take_pair()
        return self._fuse(*pair) if pair else None

    def on_expression(self, result: DetectionResult) -> Optional[FusionResult]:
        with self._lock:
            self._last_expression = result
            pair = self._take_pair()
        return self._fuse(*pair) if pair else None

    def _take_pair(self):
        """Consume both slots if both are filled. Caller holds the lock."""
        if self._last_gesture is None or self._last_expression is None:
            return None
        pair = (self._last_gesture, self._last_expression)
        self._last_gesture = None
        self._last_expression = None
        return pair

    def _fuse(self, gesture: DetectionResult, expression: DetectionResult) -> FusionResult:
        fused = FusionResult(
            detected_sign=f"{gesture.label}_{expression.label}",
            confidence=clamp_confidence((gesture.confidence + expression.confidence) / 2.0),
        )
        self._fused_count += 1

        result = self._smoother.process(fused) if self._smoother is not None else fused

        if result.confidence >= self._threshold:
            self._forwarded_count += 1
            self.output.publish(result)
            logger.debug("Detection result: %s", result)
        else:
            logger.debug("Below gate (%.2f < %.2f): %s",
                         result.confidence, self._threshold, result.detected_sign)
        return result

    def reset(self):
        """Drop any pending detections."""
        with self._lock:
            self._last_gesture = None
            self._last_expression = None

    @property
    def pending_gesture(self) -> Optional[DetectionResult]:
        return self._last_gesture

    @property
    def pending_expression(self) -> Optional[DetectionResult]:
        return self._last_expression

    @property
    def has_pending(self) -> bool:
        return self._last_gesture is not None or self._last_expression is not None

    @property
    def fused_count(self) -> int:
        return self._fused_count

    @property
    def forwarded_count(self) -> int:
        return self._forwarded_count

    @property
    def confidence_threshold(self) -> float:
        return self._threshold
