"""
Tests for Capture and Preprocessing
====================================
"""

import pytest
import numpy as np
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from modules.capture.camera_manager import CameraManager
from modules.capture.frame_processor import FrameProcessor


class TestCameraManager:
    """Test suite for CameraManager."""

    @pytest.fixture
    def mock_cv2(self):
        """Mock OpenCV VideoCapture."""
        with patch('modules.capture.camera_manager.cv2') as mock:
            mock_cap = MagicMock()
            mock_cap.isOpened.return_value = True
            mock_cap.read.return_value = (True, np.zeros((480, 640, 3), dtype=np.uint8))
            mock_cap.get.return_value = 30.0
            mock.VideoCapture.return_value = mock_cap
            yield mock

    def test_read_before_open(self):
        camera = CameraManager({"source": 0})
        assert camera.read() == (None, None)
        assert not camera.is_open

    def test_open_success(self, mock_cv2):
        camera = CameraManager({"source": 0, "warmup_frames": 0})

        assert camera.open() is True
        mock_cv2.VideoCapture.assert_called_once_with(0)

        frame_id, frame = camera.read()
        assert frame_id == 1
        assert frame.shape == (480, 640, 3)
        assert camera.read()[0] == 2

        camera.stop()
        assert camera.read() == (None, None)

    def test_digit_string_source(self, mock_cv2):
        camera = CameraManager({"source": "1", "warmup_frames": 0})
        camera.open()

        mock_cv2.VideoCapture.assert_called_once_with(1)
        assert not camera.is_file

    def test_file_source(self, mock_cv2):
        camera = CameraManager({"source": "clip.mp4"})
        camera.open()

        assert camera.is_file
        # No camera properties or warmup reads for files
        mock_cv2.VideoCapture.return_value.set.assert_not_called()
        mock_cv2.VideoCapture.return_value.read.assert_not_called()

    def test_open_failure(self, mock_cv2):
        mock_cv2.VideoCapture.return_value.isOpened.return_value = False
        camera = CameraManager({"source": 3})

        assert camera.open() is False
        assert camera.read() == (None, None)

    def test_end_of_stream(self, mock_cv2):
        mock_cv2.VideoCapture.return_value.read.return_value = (False, None)
        camera = CameraManager({"source": "clip.mp4"})
        camera.open()

        assert not camera.is_exhausted
        assert camera.read() == (None, None)
        assert camera.is_exhausted

    def test_camera_read_failure_is_not_exhaustion(self, mock_cv2):
        camera = CameraManager({"source": 0, "warmup_frames": 0})
        camera.open()
        mock_cv2.VideoCapture.return_value.read.return_value = (False, None)

        assert camera.read() == (None, None)
        assert not camera.is_exhausted

    def test_looped_file_rewinds(self, mock_cv2):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        cap = mock_cv2.VideoCapture.return_value
        cap.read.side_effect = [(False, None), (True, frame)]
        camera = CameraManager({"source": "clip.mp4", "loop": True})
        camera.open()

        frame_id, out = camera.read()
        assert frame_id == 1
        assert out is frame
        cap.set.assert_called_once_with(mock_cv2.CAP_PROP_POS_FRAMES, 0)
        assert not camera.is_exhausted

    def test_reopen_clears_exhaustion(self, mock_cv2):
        mock_cv2.VideoCapture.return_value.read.return_value = (False, None)
        camera = CameraManager({"source": "clip.mp4"})
        camera.open()
        camera.read()

        camera.open()
        assert not camera.is_exhausted

    def test_warmup_reads(self, mock_cv2):
        camera = CameraManager({"source": 0, "warmup_frames": 3})
        camera.open()

        assert mock_cv2.VideoCapture.return_value.read.call_count == 3

    def test_flip(self, mock_cv2):
        flipped = np.ones((480, 640, 3), dtype=np.uint8)
        mock_cv2.flip.return_value = flipped
        camera = CameraManager({"source": 0, "warmup_frames": 0, "flip_horizontal": True})
        camera.open()

        _, frame = camera.read()
        assert frame is flipped

    def test_resolution_property(self):
        camera = CameraManager({"width": 800, "height": 600})
        assert camera.resolution == (800, 600)

    def test_context_manager(self, mock_cv2):
        with CameraManager({"source": 0, "warmup_frames": 0}) as camera:
            assert camera.is_open

        assert not camera.is_open
        mock_cv2.VideoCapture.return_value.release.assert_called_once()


class TestFrameProcessor:
    """Test suite for FrameProcessor."""

    @pytest.fixture
    def frame(self):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        frame[:, :80] = 100
        return frame

    def test_noop_returns_input(self, frame):
        processor = FrameProcessor()

        assert processor.is_noop
        assert processor.preprocess(frame) is frame

    def test_resize_keeps_aspect(self, frame):
        processor = FrameProcessor({"target_width": 80})
        assert processor.preprocess(frame).shape == (60, 80, 3)

    def test_flip(self, frame):
        out = FrameProcessor({"flip_horizontal": True}).preprocess(frame)

        assert out[0, 0, 0] == 0
        assert out[0, -1, 0] == 100

    def test_brightness(self, frame):
        out = FrameProcessor.adjust_brightness(frame, 1.0, 50)

        assert out[0, 0, 0] == 150
        assert out[0, -1, 0] == 50

    def test_equalize_shape(self, frame):
        out = FrameProcessor.equalize_histogram(frame)
        assert out.shape == frame.shape
        assert out.dtype == np.uint8

    def test_rotate_keeps_size(self, frame):
        assert FrameProcessor.rotate(frame, 30).shape == frame.shape

    def test_detect_lighting(self):
        assert FrameProcessor.detect_lighting(np.zeros((10, 10, 3), dtype=np.uint8)) == "low"
        assert FrameProcessor.detect_lighting(np.full((10, 10, 3), 128, dtype=np.uint8)) == "good"
        assert FrameProcessor.detect_lighting(np.full((10, 10, 3), 250, dtype=np.uint8)) == "bright"


class TestCameraIntegration:
    """Integration tests requiring real camera (marked as slow)."""

    @pytest.mark.skip(reason="Requires physical camera")
    def test_real_camera_capture(self):
        camera = CameraManager({"source": 0})

        try:
            if camera.open():
                frame_id, frame = camera.read()

                assert frame is not None
                assert frame.shape[0] > 0
        finally:
            camera.stop()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
