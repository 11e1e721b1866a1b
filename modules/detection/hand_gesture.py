"""
Skin-segmentation hand analysis with convexity-defect finger counting.

Pipeline per frame:
    BGR -> HSV -> skin band threshold -> erode/dilate (opening)
    -> external contours -> largest contour -> hull + defects
    -> finger count -> GESTURE DetectionResult
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from core.types import DetectionResult
from modules.detection import geometry

logger = logging.getLogger(__name__)

COMPONENT = "HandGestureExtractor"


@dataclass
class HandGestureConfig:
    """Skin band and finger-counting thresholds."""
    hsv_lower: Tuple[int, int, int] = (0, 20, 70)
    hsv_upper: Tuple[int, int, int] = (20, 255, 255)
    kernel_size: int = 3
    depth_threshold: float = 10.0    # pixels, compared against defect depth / 256
    max_finger_angle: float = 90.0   # degrees
    min_contour_points: int = 4
    confidence: float = 0.8
    low_confidence: float = 0.3

    @classmethod
    def from_dict(cls, config: dict) -> "HandGestureConfig":
        """Create config from the `hand` section of config.yaml."""
        return cls(
            hsv_lower=tuple(config.get("hsv_lower", (0, 20, 70))),
            hsv_upper=tuple(config.get("hsv_upper", (20, 255, 255))),
            kernel_size=config.get("kernel_size", 3),
            depth_threshold=config.get("depth_threshold", 10.0),
            max_finger_angle=config.get("max_finger_angle", 90.0),
            min_contour_points=config.get("min_contour_points", 4),
            confidence=config.get("confidence", 0.8),
            low_confidence=config.get("low_confidence", 0.3),
        )


@dataclass
class HandAnalysis:
    """Intermediate geometry for the hand found in one frame."""
    contour: np.ndarray
    hull: np.ndarray
    defects: np.ndarray
    finger_count: int

    @property
    def far_points(self) -> list:
        points = self.contour.reshape(-1, 2)
        return [tuple(int(v) for v in points[far]) for _, _, far, _ in self.defects]


class HandGestureExtractor:
    """Counts raised fingers on the largest skin-coloured blob."""

    CONTOUR_COLOR = (0, 255, 0)
    HULL_COLOR = (255, 0, 0)
    DEFECT_COLOR = (0, 0, 255)

    def __init__(self, config: Optional[HandGestureConfig] = None, error_log=None):
        self.config = config or HandGestureConfig()
        self._errors = error_log
        self._kernel = cv2.getStructuringElement(
            cv2.MORPH_ELLIPSE, (self.config.kernel_size, self.config.kernel_size))
        self._lower = np.array(self.config.hsv_lower, dtype=np.uint8)
        self._upper = np.array(self.config.hsv_upper, dtype=np.uint8)
        self._last_analysis: Optional[HandAnalysis] = None

        logger.info("HandGestureExtractor initialized (skin band %s..%s)",
                    self.config.hsv_lower, self.config.hsv_upper)

    def segment_skin(self, frame: np.ndarray) -> np.ndarray:
        """Binary skin mask, opened to drop speckle noise."""
        hsv = cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)
        mask = cv2.inRange(hsv, self._lower, self._upper)
        # Erode before dilate: small false blobs vanish instead of reconnecting
        mask = cv2.erode(mask, self._kernel)
        mask = cv2.dilate(mask, self._kernel)
        return mask

    def analyze(self, frame: np.ndarray) -> Optional[HandAnalysis]:
        """Run segmentation and contour geometry on a frame.

        Returns:
            HandAnalysis for the largest skin contour, or None when there is
            no contour or it has too few points for a hull.
        """
        mask = self.segment_skin(frame)
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        if not contours:
            return None

        contour = geometry.largest_contour(contours)
        if contour is None or len(contour) < self.config.min_contour_points:
            return None

        hull, defects = geometry.convex_hull_and_defects(contour)
        fingers = geometry.count_fingers(
            contour, defects,
            depth_threshold=self.config.depth_threshold,
            max_angle=self.config.max_finger_angle,
        )
        return HandAnalysis(contour=contour, hull=hull, defects=defects, finger_count=fingers)

    def process(self, frame: np.ndarray, canvas: Optional[np.ndarray] = None) -> Optional[DetectionResult]:
        """Extract a GESTURE result from one frame.

        Args:
            frame: BGR frame (read only)
            canvas: Optional image to draw contour, hull and defects on

        Returns:
            DetectionResult or None when no hand was found or analysis failed
        """
        try:
            analysis = self.analyze(frame)
        except Exception as e:
            self._record("Error processing frame in gesture extractor", e)
            return None

        self._last_analysis = analysis
        if analysis is None:
            return None

        if canvas is not None:
            self.draw(canvas, analysis)

        count = analysis.finger_count
        confidence = (self.config.confidence
                      if geometry.MIN_FINGERS <= count <= geometry.MAX_FINGERS
                      else self.config.low_confidence)
        result = DetectionResult.gesture(count, confidence)
        logger.debug("Gesture: %d finger(s), %d defect(s)", count, len(analysis.defects))
        return result

    def draw(self, canvas: np.ndarray, analysis: HandAnalysis):
        """Draw contour, hull and defect far points."""
        try:
            cv2.drawContours(canvas, [analysis.contour], -1, self.CONTOUR_COLOR, 2)
            cv2.drawContours(canvas, [analysis.hull], -1, self.HULL_COLOR, 2)
            for point in analysis.far_points:
                cv2.circle(canvas, point, 4, self.DEFECT_COLOR, -1)
        except Exception as e:
            self._record("Error drawing hand annotations", e)

    def _record(self, message: str, error: Exception):
        if self._errors is not None:
            self._errors.record(COMPONENT, message, error)
        else:
            logger.error("%s: %s", message, error)

    @property
    def last_analysis(self) -> Optional[HandAnalysis]:
        return self._last_analysis
