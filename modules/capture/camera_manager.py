"""
Capture source for the detection worker.

Wraps cv2.VideoCapture for either a camera index or a video file path.
Frames are read synchronously by the worker thread.
"""

import logging
import threading

import cv2

logger = logging.getLogger(__name__)


class CameraManager:
    """Opens a capture device or file and hands out numbered frames."""

    def __init__(self, config: dict):
        self._source = config.get("source", config.get("device_id", 0))
        self._width = config.get("width", 640)
        self._height = config.get("height", 480)
        self._fps = config.get("fps", 30)
        self._flip_h = config.get("flip_horizontal", False)
        self._warmup_frames = config.get("warmup_frames", 5)
        self._loop_file = config.get("loop", False)

        self._cap = None
        self._frame_id = 0
        self._exhausted = False
        self._lock = threading.Lock()

    @property
    def is_file(self) -> bool:
        return isinstance(self._source, str) and not self._source.isdigit()

    @property
    def is_exhausted(self) -> bool:
        """True once a video file has no more frames (after any rewind)."""
        return self._exhausted

    def open(self) -> bool:
        """Open the source and apply capture settings."""
        self._exhausted = False
        source = int(self._source) if isinstance(self._source, str) and self._source.isdigit() else self._source
        self._cap = cv2.VideoCapture(source)
        if not self._cap.isOpened():
            logger.error("Failed to open capture source %r", self._source)
            self._cap = None
            return False

        if not self.is_file:
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
            self._cap.set(cv2.CAP_PROP_FPS, self._fps)

        actual_w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = self._cap.get(cv2.CAP_PROP_FPS)
        logger.info("Capture opened: %r %dx%d @ %.0f FPS",
                    self._source, actual_w, actual_h, actual_fps)

        if not self.is_file:
            # Let auto-exposure settle
            for _ in range(self._warmup_frames):
                self._cap.read()

        return True

    def read(self):
        """Read the next frame.

        Returns:
            tuple: (frame_id, numpy array) or (None, None) if no frame
        """
        with self._lock:
            if self._cap is None:
                return None, None

            ret, frame = self._cap.read()
            if (not ret or frame is None) and self.is_file and self._loop_file:
                self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                ret, frame = self._cap.read()

            if not ret or frame is None:
                if self.is_file and not self._exhausted:
                    logger.info("End of video file %r", self._source)
                    self._exhausted = True
                return None, None

            if self._flip_h:
                frame = cv2.flip(frame, 1)
            self._frame_id += 1
            return self._frame_id, frame

    @property
    def resolution(self) -> tuple:
        return (self._width, self._height)

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def stop(self):
        """Release the capture source."""
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
        logger.info("Capture stopped")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.stop()
