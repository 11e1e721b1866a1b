"""
Tests for Application Wiring
=============================
"""

import time
from unittest.mock import MagicMock, patch

import pytest
import numpy as np
import cv2
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.pipeline import PipelineResult
from core.types import FusionResult
from main import SignInterpreter, parse_args
from modules.utils.config import Config


class FakeDetector:
    def __init__(self, boxes=()):
        self.boxes = boxes

    def detectMultiScale(self, image, *args, **kwargs):
        return np.array(self.boxes) if len(self.boxes) else ()


class TestParseArgs:
    """Test suite for command-line parsing."""

    def test_defaults(self):
        args = parse_args([])
        assert args.config is None
        assert args.display is False
        assert args.duration is None

    def test_overrides(self):
        args = parse_args(["--source", "clip.mp4", "--display", "--duration", "5"])
        assert args.source == "clip.mp4"
        assert args.display is True
        assert args.duration == 5.0


class TestSignInterpreter:
    """Test suite for the wired component graph."""

    @pytest.fixture
    def app(self):
        return SignInterpreter(
            Config(),
            face_detector=FakeDetector([(0, 0, 40, 40)]),
            eye_detector=FakeDetector(),
        )

    def test_frame_reaches_sinks(self, app):
        # Skin disk on the right, bright "face" patch at the top-left
        frame = np.zeros((200, 200, 3), dtype=np.uint8)
        cv2.circle(frame, (130, 130), 50, (80, 120, 200), -1)
        frame[0:40, 0:40] = 220

        result = app.pipeline.process(frame)
        app.dispatcher.flush()
        app.dispatcher.stop()

        assert result.gesture.value == 1
        assert result.expression is not None
        assert result.forwarded
        assert app.history.total_detections == 1
        assert app.sign_logger.total_signs == 1
        assert app.analytics.get_summary()["total_signs"] == 1

    def test_overlay_leaves_worker_frame_untouched(self, app):
        result = PipelineResult(frame_id=1)
        result.frame = np.zeros((120, 160, 3), dtype=np.uint8)
        app.history(FusionResult("3_POSITIVE", 0.8))

        first = app.render_overlay(result)
        second = app.render_overlay(result)

        assert not result.frame.any()
        assert first.any()
        assert np.array_equal(first, second)
        assert app.render_overlay(None) is None

    def test_run_ends_with_video_file(self):
        """A finished, non-looping video file ends the run without a deadline."""
        app = SignInterpreter(
            Config({"camera": {"source": "clip.mp4", "loop": False}}),
            face_detector=FakeDetector(),
            eye_detector=FakeDetector(),
        )
        with patch("modules.capture.camera_manager.cv2") as mock_cv2:
            cap = MagicMock()
            cap.isOpened.return_value = True
            cap.read.return_value = (False, None)
            cap.get.return_value = 30.0
            mock_cv2.VideoCapture.return_value = cap

            start = time.time()
            assert app.start(duration=10) is True

        assert time.time() - start < 5
        assert app.camera.is_exhausted
        assert not app.worker.is_running
        assert not app.dispatcher.is_running

    def test_start_fails_without_source(self, app, monkeypatch):
        monkeypatch.setattr(app.camera, "open", lambda: False)
        assert app.start(duration=0.1) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
