"""
Optional frame preprocessing before feature extraction.

Every step is off by default so the extractors see the captured frame
unchanged unless the `preprocess` config section asks otherwise.
"""

import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class FrameProcessor:
    """Resize / flip / equalize / brightness adjustments on BGR frames."""

    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        self._target_width = config.get("target_width")
        self._flip = config.get("flip_horizontal", False)
        self._equalize = config.get("equalize", False)
        self._alpha = config.get("contrast", 1.0)
        self._beta = config.get("brightness", 0.0)

        logger.info("FrameProcessor: width=%s flip=%s equalize=%s",
                    self._target_width, self._flip, self._equalize)

    @property
    def is_noop(self) -> bool:
        return (not self._target_width and not self._flip and not self._equalize
                and self._alpha == 1.0 and self._beta == 0.0)

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """Apply the configured steps; returns the input when none are enabled."""
        if self.is_noop:
            return frame
        if self._target_width:
            frame = self.resize_to_width(frame, self._target_width)
        if self._flip:
            frame = cv2.flip(frame, 1)
        if self._alpha != 1.0 or self._beta != 0.0:
            frame = self.adjust_brightness(frame, self._alpha, self._beta)
        if self._equalize:
            frame = self.equalize_histogram(frame)
        return frame

    @staticmethod
    def resize_to_width(frame: np.ndarray, width: int) -> np.ndarray:
        """Resize keeping the aspect ratio."""
        h, w = frame.shape[:2]
        if w == width:
            return frame
        height = max(1, int(round(h * width / w)))
        interpolation = cv2.INTER_AREA if width < w else cv2.INTER_LINEAR
        return cv2.resize(frame, (width, height), interpolation=interpolation)

    @staticmethod
    def equalize_histogram(frame: np.ndarray) -> np.ndarray:
        """Equalize luminance only (Y channel of YUV) for colour frames."""
        if frame.ndim == 2 or frame.shape[2] == 1:
            return cv2.equalizeHist(frame)
        yuv = cv2.cvtColor(frame, cv2.COLOR_BGR2YUV)
        yuv[:, :, 0] = cv2.equalizeHist(yuv[:, :, 0])
        return cv2.cvtColor(yuv, cv2.COLOR_YUV2BGR)

    @staticmethod
    def adjust_brightness(frame: np.ndarray, alpha: float, beta: float) -> np.ndarray:
        """new = alpha * pixel + beta, saturated to uint8."""
        return cv2.convertScaleAbs(frame, alpha=alpha, beta=beta)

    @staticmethod
    def rotate(frame: np.ndarray, angle: float) -> np.ndarray:
        """Rotate about the frame centre, keeping the frame size."""
        h, w = frame.shape[:2]
        matrix = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), angle, 1.0)
        return cv2.warpAffine(frame, matrix, (w, h))

    @staticmethod
    def detect_lighting(frame: np.ndarray) -> str:
        """Classify lighting as 'low', 'good' or 'bright'."""
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
        mean_brightness = float(np.mean(gray))
        if mean_brightness < 40:
            return "low"
        if mean_brightness > 220:
            return "bright"
        return "good"
