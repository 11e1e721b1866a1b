"""
Per-frame orchestration and the detection worker loop.

Architecture:
    CaptureSource -> FrameProcessor -> HandGestureExtractor
                                    -> FaceExpressionExtractor
    -> FusionEngine -> GrammarSmoother -> (confidence gate) -> sinks

Both extractors run sequentially on the same frame inside the worker
thread; only sink delivery leaves the thread (see core.events).
"""

import time
import logging
import threading
from contextlib import nullcontext
from typing import Optional

import numpy as np

from core.types import DetectionResult, FusionResult

logger = logging.getLogger(__name__)

COMPONENT = "SignPipeline"


class PipelineResult:
    """Result of a single pipeline iteration."""

    __slots__ = (
        "frame_id", "frame", "gesture", "expression",
        "fusion", "forwarded", "failed", "latency_ms", "timestamp",
    )

    def __init__(self, frame_id: int = 0):
        self.frame_id = frame_id
        self.frame: Optional[np.ndarray] = None    # annotated copy
        self.gesture: Optional[DetectionResult] = None
        self.expression: Optional[DetectionResult] = None
        self.fusion: Optional[FusionResult] = None
        self.forwarded = False
        self.failed = False
        self.latency_ms = 0.0
        self.timestamp = time.time()


class SignPipeline:
    """Runs one frame through extraction, fusion and smoothing."""

    def __init__(
        self,
        hand_extractor,
        face_extractor,
        fusion_engine,
        frame_processor=None,
        performance_monitor=None,
        analytics=None,
        error_log=None,
        annotate: bool = True,
    ):
        self._hand = hand_extractor
        self._face = face_extractor
        self._fusion = fusion_engine
        self._frame_processor = frame_processor
        self._perf = performance_monitor
        self._analytics = analytics
        self._errors = error_log
        self._annotate = annotate
        self._frame_count = 0

    def _measure(self, stage: str):
        if self._perf is not None:
            return self._perf.measure(stage)
        return nullcontext()

    def process(self, frame: np.ndarray, frame_id: Optional[int] = None) -> PipelineResult:
        """Process one frame. Never raises; failures yield an empty result."""
        self._frame_count += 1
        result = PipelineResult(frame_id if frame_id is not None else self._frame_count)
        start = time.perf_counter()

        try:
            with self._measure("total"):
                self._run(frame, result)
        except Exception as e:
            result.failed = True
            if self._errors is not None:
                self._errors.record(COMPONENT, "Error processing video frame", e)
            else:
                logger.error("Error processing video frame: %s", e)
            if self._perf is not None:
                self._perf.record_failure()

        result.latency_ms = (time.perf_counter() - start) * 1000
        if self._perf is not None:
            self._perf.tick()
        return result

    def _run(self, frame: np.ndarray, result: PipelineResult):
        # --- 1. Preprocess ---
        if self._frame_processor is not None:
            with self._measure("preprocess"):
                frame = self._frame_processor.preprocess(frame)

        canvas = frame.copy() if self._annotate else None

        # --- 2. Feature extraction (same frame, sequential) ---
        with self._measure("hand"):
            result.gesture = self._hand.process(frame, canvas)
        with self._measure("face"):
            result.expression = self._face.process(frame, canvas)

        # --- 3. Fusion + smoothing ---
        with self._measure("fusion"):
            if result.gesture is not None:
                result.fusion = self._fusion.submit(result.gesture) or result.fusion
            if result.expression is not None:
                result.fusion = self._fusion.submit(result.expression) or result.fusion

        if result.fusion is not None:
            result.forwarded = result.fusion.confidence >= self._fusion.confidence_threshold

        if self._analytics is not None:
            self._analytics.record_frame(
                result.gesture is not None,
                result.expression is not None,
                fused=result.fusion is not None,
            )

        result.frame = canvas if canvas is not None else frame

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def fusion_engine(self):
        return self._fusion


class DetectionWorker:
    """Drives the pipeline from a capture source on a background thread.

    Stopping is cooperative: `stop()` sets the loop's stop event, which is
    checked once per iteration, so the in-flight frame completes. At most
    one loop runs at a time; `start()` is refused while a loop that missed
    its stop timeout is still alive. The loop also ends on its own when the
    source reports `is_exhausted` (a finished video file).
    """

    def __init__(self, pipeline: SignPipeline, source, target_fps: float = 30.0,
                 idle_sleep: float = 0.005, error_log=None):
        self._pipeline = pipeline
        self._errors = error_log
        self._source = source
        self._frame_interval = 1.0 / target_fps if target_fps > 0 else 0.0
        self._idle_sleep = idle_sleep
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._state_lock = threading.Lock()
        self._lock = threading.Lock()
        self._latest: Optional[PipelineResult] = None
        self._iterations = 0

    def start(self) -> bool:
        """Start the worker thread.

        Returns:
            True if a loop is running afterwards, False if the previous
            loop has not exited yet.
        """
        with self._state_lock:
            if self._running:
                return True
            if self._thread is not None and self._thread.is_alive():
                logger.warning("Previous detection loop is still running; start refused")
                return False
            self._stop_event = threading.Event()
            self._running = True
            self._thread = threading.Thread(
                target=self._loop, args=(self._stop_event,), name="detection-worker", daemon=True)
            self._thread.start()
        logger.info("Detection started")
        return True

    def stop(self, timeout: float = 2.0) -> bool:
        """Request the loop to exit and wait for it.

        Returns:
            True once the loop thread has exited, False if it is still
            finishing its current frame after `timeout` seconds.
        """
        with self._state_lock:
            self._running = False
            if self._stop_event is not None:
                self._stop_event.set()
            thread = self._thread

        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)

        with self._state_lock:
            if thread.is_alive():
                logger.warning("Detection loop did not exit within %.1fs", timeout)
                return False
            if self._thread is thread:
                self._thread = None
        logger.info("Detection stopped")
        return True

    def _loop(self, stop_event: threading.Event):
        while not stop_event.is_set():
            started = time.perf_counter()

            try:
                frame_id, frame = self._source.read()
            except Exception as e:
                if self._errors is not None:
                    self._errors.record("DetectionWorker", "Error reading frame", e)
                else:
                    logger.error("Error reading frame: %s", e)
                frame = None

            if frame is None:
                if getattr(self._source, "is_exhausted", False):
                    logger.info("Capture source exhausted, detection loop exiting")
                    with self._state_lock:
                        if self._stop_event is stop_event:
                            self._running = False
                    return
                stop_event.wait(self._idle_sleep)
                continue

            result = self._pipeline.process(frame, frame_id)
            with self._lock:
                self._latest = result
                self._iterations += 1

            # Hold the target cadence
            remaining = self._frame_interval - (time.perf_counter() - started)
            if remaining > 0:
                stop_event.wait(remaining)

    def latest_result(self) -> Optional[PipelineResult]:
        """Most recent pipeline result (annotated frame included)."""
        with self._lock:
            return self._latest

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def iterations(self) -> int:
        with self._lock:
            return self._iterations
