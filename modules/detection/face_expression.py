"""
Face-region intensity statistics as a lightweight expression classifier.

Faces and eyes come from Haar cascades; the expression class is derived
from the mean and standard deviation of the equalized face region.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import cv2
import numpy as np

from core.types import DetectionResult, ExpressionType
from modules.detection import geometry

logger = logging.getLogger(__name__)

COMPONENT = "FaceExpressionExtractor"

FACE_CASCADE_FILE = "haarcascade_frontalface_default.xml"
EYE_CASCADE_FILE = "haarcascade_eye.xml"


class CascadeLoadError(RuntimeError):
    """A Haar cascade could not be loaded."""


@dataclass
class FaceExpressionConfig:
    """Cascade locations and expression thresholds."""
    face_cascade: Optional[str] = None
    eye_cascade: Optional[str] = None
    scale_factor: float = 1.1
    min_neighbors: int = 3
    min_face_size: Tuple[int, int] = (30, 30)
    expressive_stddev: float = 50.0
    positive_mean: float = 127.0
    neutral_confidence: float = 0.5
    confidence_threshold: float = 0.7

    @classmethod
    def from_dict(cls, config: dict) -> "FaceExpressionConfig":
        """Create config from the `face` section of config.yaml."""
        return cls(
            face_cascade=config.get("face_cascade"),
            eye_cascade=config.get("eye_cascade"),
            scale_factor=config.get("scale_factor", 1.1),
            min_neighbors=config.get("min_neighbors", 3),
            min_face_size=tuple(config.get("min_face_size", (30, 30))),
            expressive_stddev=config.get("expressive_stddev", 50.0),
            positive_mean=config.get("positive_mean", 127.0),
            neutral_confidence=config.get("neutral_confidence", 0.5),
            confidence_threshold=config.get("confidence_threshold", 0.7),
        )


@dataclass
class FaceObservation:
    """Classification of one detected face region."""
    rect: Tuple[int, int, int, int]
    expression: ExpressionType
    confidence: float
    mean: float
    stddev: float
    eyes: List[Tuple[int, int, int, int]] = field(default_factory=list)
    emitted: bool = False


def classify_expression(mean: float, stddev: float,
                        config: Optional[FaceExpressionConfig] = None) -> Tuple[ExpressionType, float]:
    """Map face-region intensity statistics to an expression and confidence."""
    config = config or FaceExpressionConfig()
    if stddev > config.expressive_stddev:
        return ExpressionType.EXPRESSIVE, min(1.0, stddev / 100.0)
    if mean > config.positive_mean:
        return ExpressionType.POSITIVE, min(1.0, mean / 255.0)
    return ExpressionType.NEUTRAL, config.neutral_confidence


def load_cascade(path: Optional[str], default_file: str):
    """Load a cascade from `path`, or from OpenCV's bundled data."""
    if not path:
        cascade_dir = getattr(getattr(cv2, "data", None), "haarcascades", "")
        path = os.path.join(cascade_dir, default_file)

    classifier = cv2.CascadeClassifier(path)
    if classifier.empty():
        raise CascadeLoadError(f"Cannot load cascade file: {path}")
    logger.info("Loaded cascade %s", path)
    return classifier


class FaceExpressionExtractor:
    """Classifies the expression of each detected face.

    Detectors are any objects with an OpenCV-style `detectMultiScale`;
    when not supplied, the bundled Haar cascades are loaded.
    """

    FACE_COLOR = (0, 255, 0)
    EYE_COLOR = (255, 0, 0)

    def __init__(self, config: Optional[FaceExpressionConfig] = None,
                 face_detector=None, eye_detector=None, error_log=None):
        self.config = config or FaceExpressionConfig()
        self._errors = error_log
        self._face_detector = face_detector or load_cascade(
            self.config.face_cascade, FACE_CASCADE_FILE)
        self._eye_detector = eye_detector or load_cascade(
            self.config.eye_cascade, EYE_CASCADE_FILE)
        self._last_observations: List[FaceObservation] = []

        logger.info("FaceExpressionExtractor initialized (gate=%.2f)",
                    self.config.confidence_threshold)

    def analyze(self, frame: np.ndarray) -> List[FaceObservation]:
        """Detect and classify every face in the frame."""
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        gray = cv2.equalizeHist(gray)

        faces = self._face_detector.detectMultiScale(
            gray,
            scaleFactor=self.config.scale_factor,
            minNeighbors=self.config.min_neighbors,
            minSize=self.config.min_face_size,
        )

        observations = []
        for (x, y, w, h) in faces:
            roi = gray[y:y + h, x:x + w]
            if roi.size == 0:
                continue

            eyes = [
                (int(ex + x), int(ey + y), int(ew), int(eh))
                for (ex, ey, ew, eh) in self._eye_detector.detectMultiScale(roi)
            ]
            mean, stddev = geometry.intensity_stats(roi)
            expression, confidence = classify_expression(mean, stddev, self.config)
            observations.append(FaceObservation(
                rect=(int(x), int(y), int(w), int(h)),
                expression=expression,
                confidence=confidence,
                mean=mean,
                stddev=stddev,
                eyes=eyes,
                emitted=confidence >= self.config.confidence_threshold,
            ))
        return observations

    def process(self, frame: np.ndarray, canvas: Optional[np.ndarray] = None) -> Optional[DetectionResult]:
        """Extract a FACIAL_EXPRESSION result from one frame.

        With several qualifying faces the last one wins.

        Returns:
            DetectionResult or None when no face passes the confidence gate
        """
        try:
            observations = self.analyze(frame)
        except Exception as e:
            self._record("Error processing frame in face extractor", e)
            return None

        self._last_observations = observations
        if canvas is not None:
            self.draw(canvas, observations)

        result = None
        for obs in observations:
            if not obs.emitted:
                logger.debug("Expression %s suppressed (conf=%.2f)",
                             obs.expression.value, obs.confidence)
                continue
            if result is not None:
                logger.debug("Multiple faces; replacing %r", result)
            result = DetectionResult.expression(obs.expression, obs.confidence)
        return result

    def draw(self, canvas: np.ndarray, observations: List[FaceObservation]):
        """Draw face and eye rectangles."""
        try:
            for obs in observations:
                x, y, w, h = obs.rect
                cv2.rectangle(canvas, (x, y), (x + w, y + h), self.FACE_COLOR, 2)
                for ex, ey, ew, eh in obs.eyes:
                    cv2.rectangle(canvas, (ex, ey), (ex + ew, ey + eh), self.EYE_COLOR, 2)
        except Exception as e:
            self._record("Error drawing face annotations", e)

    def _record(self, message: str, error: Exception):
        if self._errors is not None:
            self._errors.record(COMPONENT, message, error)
        else:
            logger.error("%s: %s", message, error)

    @property
    def last_observations(self) -> List[FaceObservation]:
        return list(self._last_observations)
