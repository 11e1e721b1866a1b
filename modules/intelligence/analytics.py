"""
Session statistics for detections and finalized signs.
"""

import time
import logging
import threading
from collections import Counter, defaultdict

logger = logging.getLogger(__name__)


class Analytics:
    """Collects per-frame detection rates and per-sign usage.

    `record_frame` is called by the pipeline; the instance is also a
    result sink (`__call__`) for finalized signs.
    """

    def __init__(self):
        self._session_start = time.time()
        self._lock = threading.Lock()
        self._sign_counts = Counter()
        self._confidence_history = defaultdict(list)
        self._total_frames = 0
        self._gesture_frames = 0
        self._expression_frames = 0
        self._fused_pairs = 0

    def __call__(self, result):
        self.record_sign(result.detected_sign, result.confidence)

    def record_frame(self, gesture_found: bool, expression_found: bool, fused: bool = False):
        """Record one processed frame."""
        with self._lock:
            self._total_frames += 1
            if gesture_found:
                self._gesture_frames += 1
            if expression_found:
                self._expression_frames += 1
            if fused:
                self._fused_pairs += 1

    def record_sign(self, sign: str, confidence: float):
        """Record a finalized sign."""
        with self._lock:
            self._sign_counts[sign] += 1
            self._confidence_history[sign].append(confidence)

    @property
    def session_duration(self) -> float:
        return time.time() - self._session_start

    def _rate(self, count: int) -> float:
        if self._total_frames == 0:
            return 0.0
        return count / self._total_frames * 100

    def get_summary(self) -> dict:
        """Session summary as a plain dict."""
        duration = self.session_duration
        with self._lock:
            avg_confidences = {
                sign: round(sum(confs) / len(confs), 3)
                for sign, confs in self._confidence_history.items() if confs
            }
            total_signs = sum(self._sign_counts.values())
            return {
                "session_duration_s": round(duration, 1),
                "total_frames": self._total_frames,
                "gesture_rate_pct": round(self._rate(self._gesture_frames), 1),
                "expression_rate_pct": round(self._rate(self._expression_frames), 1),
                "fused_pairs": self._fused_pairs,
                "total_signs": total_signs,
                "sign_counts": dict(self._sign_counts),
                "avg_confidences": avg_confidences,
                "most_common_sign": self._sign_counts.most_common(1)[0][0] if self._sign_counts else None,
                "signs_per_minute": round(total_signs / max(duration / 60, 0.1), 1),
            }

    def print_summary(self):
        """Log a formatted session summary."""
        summary = self.get_summary()
        logger.info("=" * 60)
        logger.info("SESSION ANALYTICS")
        logger.info("=" * 60)
        logger.info("Duration:        %.1fs", summary["session_duration_s"])
        logger.info("Total Frames:    %d", summary["total_frames"])
        logger.info("Gesture Rate:    %.1f%%", summary["gesture_rate_pct"])
        logger.info("Expression Rate: %.1f%%", summary["expression_rate_pct"])
        logger.info("Fused Pairs:     %d", summary["fused_pairs"])
        logger.info("Signs/min:       %.1f", summary["signs_per_minute"])
        logger.info("-" * 40)
        for sign, count in sorted(summary["sign_counts"].items(), key=lambda x: -x[1]):
            conf = summary["avg_confidences"].get(sign, 0)
            logger.info("  %-20s %4d  (avg conf: %.2f)", sign, count, conf)
        logger.info("=" * 60)
