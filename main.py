#!/usr/bin/env python3
"""
LSA Sign Interpreter
Application entry point: wires capture, extraction, fusion, grammar
smoothing and result sinks, then runs the detection worker.

Usage:
    python main.py                      # Default camera, log signs
    python main.py --display            # Show the annotated feed
    python main.py --source clip.mp4    # Read frames from a video file
    python main.py --duration 30        # Stop after 30 seconds
"""

import sys
import os
import time
import signal
import argparse
import logging

import cv2

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from core.events import AsyncDispatcher
from core.pipeline import SignPipeline, DetectionWorker
from modules.capture.camera_manager import CameraManager
from modules.capture.frame_processor import FrameProcessor
from modules.detection.face_expression import (
    CascadeLoadError, FaceExpressionConfig, FaceExpressionExtractor,
)
from modules.detection.hand_gesture import HandGestureConfig, HandGestureExtractor
from modules.intelligence.analytics import Analytics
from modules.intelligence.error_log import ErrorLog
from modules.output.history_sink import HistorySink
from modules.recognition.fusion_engine import FusionEngine
from modules.recognition.grammar_smoother import GrammarRules, GrammarSmoother
from modules.utils.config import Config
from modules.utils.logger import setup_logging, SignLogger
from modules.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


class SignInterpreter:
    """Owns every component for the lifetime of one run."""

    def __init__(self, config: Config, face_detector=None, eye_detector=None):
        self._config = config
        self._running = False

        # Shared handles
        self.error_log = ErrorLog(max_entries=config.get("errors.max_entries", 100))
        self.perf = PerformanceMonitor(window_size=config.get("pipeline.metrics_window", 100))
        self.analytics = Analytics()

        # Sinks, delivered off the worker thread
        self.history = HistorySink(max_items=config.get("history.max_items"))
        self.sign_logger = SignLogger()
        self.dispatcher = AsyncDispatcher([self.history, self.sign_logger, self.analytics])

        # Core stages
        grammar_cfg = config.grammar
        self.smoother = GrammarSmoother(
            rules=GrammarRules.from_dict(grammar_cfg),
            capacity=grammar_cfg.get("history_size", 10),
            max_bonus=grammar_cfg.get("max_bonus", 0.1),
            error_log=self.error_log,
        )
        self.fusion = FusionEngine(
            smoother=self.smoother,
            confidence_threshold=config.get("fusion.confidence_threshold", 0.7),
            subscribers=[self.dispatcher.submit],
        )
        self.hand = HandGestureExtractor(
            HandGestureConfig.from_dict(config.hand), error_log=self.error_log)
        self.face = FaceExpressionExtractor(
            FaceExpressionConfig.from_dict(config.face),
            face_detector=face_detector,
            eye_detector=eye_detector,
            error_log=self.error_log,
        )

        self.pipeline = SignPipeline(
            hand_extractor=self.hand,
            face_extractor=self.face,
            fusion_engine=self.fusion,
            frame_processor=FrameProcessor(config.get_section("preprocess")),
            performance_monitor=self.perf,
            analytics=self.analytics,
            error_log=self.error_log,
            annotate=config.get("display.enabled", False),
        )

        self.camera = CameraManager(config.camera)
        self.worker = DetectionWorker(
            self.pipeline, self.camera,
            target_fps=config.get("pipeline.target_fps", 30),
            error_log=self.error_log,
        )

        logger.info("SignInterpreter initialized")

    def start(self, duration: float = None) -> bool:
        """Open the capture source and run until stopped."""
        if not self.camera.open():
            logger.error("Failed to open capture source. Check connection and permissions.")
            return False

        self.dispatcher.start()
        self.worker.start()
        self._running = True
        deadline = time.time() + duration if duration else None

        try:
            if self._config.get("display.enabled", False):
                self._run_display(deadline)
            else:
                while self._active(deadline):
                    time.sleep(0.1)
        finally:
            self.shutdown()
        return True

    def _active(self, deadline) -> bool:
        """Keep running until stopped, the source ends, or the deadline passes."""
        if not self._running or not self.worker.is_running:
            return False
        return deadline is None or time.time() < deadline

    def _run_display(self, deadline):
        window_name = self._config.get("display.window_name", "LSA Sign Interpreter")
        while self._active(deadline):
            frame = self.render_overlay(self.worker.latest_result())
            if frame is not None:
                cv2.imshow(window_name, frame)

            if cv2.waitKey(30) & 0xFF == ord("q"):
                self._running = False
        cv2.destroyAllWindows()

    def render_overlay(self, result):
        """Latest sign and FPS drawn on a copy of the result frame.

        The result is shared with the worker, so its frame is never drawn on.
        """
        if result is None or result.frame is None:
            return None
        frame = result.frame.copy()
        latest = self.history.latest()
        if latest is not None:
            cv2.putText(frame, str(latest), (10, 30),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)
        cv2.putText(frame, f"FPS: {self.perf.fps:.1f}", (10, frame.shape[0] - 10),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 0), 1)
        return frame

    def shutdown(self):
        """Stop the worker, drain sinks, release capture and print reports."""
        logger.info("Shutting down...")
        self._running = False
        self.worker.stop()
        self.dispatcher.stop()
        self.camera.stop()

        self.perf.print_report()
        self.analytics.print_summary()
        logger.info(self.history.statistics_text())
        if self.error_log.total_recorded:
            logger.warning("%d recovered error(s) during session", self.error_log.total_recorded)
        logger.info("Shutdown complete.")

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="LSA Sign Interpreter")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--source", type=str, default=None,
                        help="Camera index or video file path")
    parser.add_argument("--display", action="store_true", help="Show the annotated feed")
    parser.add_argument("--duration", type=float, default=None,
                        help="Stop after this many seconds")
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    config = Config().load(config_path=args.config)
    if args.source is not None:
        config.set("camera.source", args.source)
    if args.display:
        config.set("display.enabled", True)

    log_cfg = config.get_section("logging")
    setup_logging(
        level=args.log_level or log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
        sign_log_file=log_cfg.get("sign_file"),
    )

    logger.info("=" * 60)
    logger.info("  %s", config.get("system.name", "LSA Sign Interpreter"))
    logger.info("  Version: %s", config.get("system.version", "1.0.0"))
    logger.info("=" * 60)

    try:
        app = SignInterpreter(config)
    except CascadeLoadError as e:
        logger.error("Face detection unavailable: %s", e)
        return 1

    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    return 0 if app.start(duration=args.duration) else 1


if __name__ == "__main__":
    sys.exit(main())
