"""
Tests for Hand Gesture Extraction
==================================
"""

import pytest
import numpy as np
import cv2
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import DetectionType
from modules.detection.hand_gesture import HandGestureConfig, HandGestureExtractor
from modules.intelligence.error_log import ErrorLog

# BGR colour inside the default skin band (H~10, S~153, V=200)
SKIN_BGR = (80, 120, 200)


@pytest.fixture
def error_log():
    return ErrorLog()


@pytest.fixture
def extractor(error_log):
    return HandGestureExtractor(error_log=error_log)


@pytest.fixture
def blank_frame():
    return np.zeros((200, 200, 3), dtype=np.uint8)


@pytest.fixture
def disk_frame(blank_frame):
    """A filled skin-coloured disk: convex, so no finger gaps."""
    cv2.circle(blank_frame, (100, 100), 60, SKIN_BGR, -1)
    return blank_frame


@pytest.fixture
def notched_frame(blank_frame):
    """A skin-coloured square with one deep V notch (two 'fingers')."""
    polygon = np.array([(20, 20), (180, 20), (180, 180), (100, 60), (20, 180)], dtype=np.int32)
    cv2.fillPoly(blank_frame, [polygon], SKIN_BGR)
    return blank_frame


class TestSkinSegmentation:
    """Test suite for the HSV skin mask."""

    def test_mask_shape(self, extractor, disk_frame):
        mask = extractor.segment_skin(disk_frame)

        assert mask.shape == disk_frame.shape[:2]
        assert mask[100, 100] == 255
        assert mask[5, 5] == 0

    def test_speckle_removed(self, extractor, blank_frame):
        """A single skin pixel does not survive the opening."""
        blank_frame[50, 50] = SKIN_BGR
        mask = extractor.segment_skin(blank_frame)

        assert not mask.any()

    def test_non_skin_colour_ignored(self, extractor, blank_frame):
        cv2.circle(blank_frame, (100, 100), 60, (255, 0, 0), -1)  # saturated blue
        assert extractor.process(blank_frame) is None


class TestHandGestureExtractor:
    """Test suite for finger counting on synthetic frames."""

    def test_no_hand(self, extractor, blank_frame):
        assert extractor.process(blank_frame) is None
        assert extractor.last_analysis is None

    def test_convex_blob_is_one_finger(self, extractor, disk_frame):
        result = extractor.process(disk_frame)

        assert result is not None
        assert result.type == DetectionType.GESTURE
        assert result.value == 1
        assert result.label == "1"
        assert result.confidence == pytest.approx(0.8)

    def test_notch_is_two_fingers(self, extractor, notched_frame):
        result = extractor.process(notched_frame)

        assert result is not None
        assert result.value == 2
        assert len(extractor.last_analysis.far_points) >= 1

    def test_count_always_in_range(self, extractor):
        rng = np.random.default_rng(42)
        for _ in range(10):
            frame = rng.integers(0, 256, (120, 160, 3), dtype=np.uint8)
            result = extractor.process(frame)
            if result is not None:
                assert 1 <= result.value <= 5

    def test_canvas_annotated_frame_untouched(self, extractor, notched_frame):
        original = notched_frame.copy()
        canvas = notched_frame.copy()

        extractor.process(notched_frame, canvas)

        assert np.array_equal(notched_frame, original)
        assert not np.array_equal(canvas, original)

    def test_failure_is_recorded(self, extractor, error_log):
        """A bad frame yields None and one error entry, never an exception."""
        assert extractor.process(None) is None

        errors = error_log.recent_errors()
        assert len(errors) == 1
        assert errors[0].component == "HandGestureExtractor"

    def test_continues_after_failure(self, extractor, disk_frame):
        extractor.process(None)
        assert extractor.process(disk_frame).value == 1


class TestHandGestureConfig:
    """Test suite for config loading."""

    def test_defaults(self):
        config = HandGestureConfig()
        assert config.hsv_lower == (0, 20, 70)
        assert config.hsv_upper == (20, 255, 255)
        assert config.depth_threshold == 10.0

    def test_from_dict_partial(self):
        config = HandGestureConfig.from_dict({"hsv_lower": [0, 30, 60], "confidence": 0.9})

        assert config.hsv_lower == (0, 30, 60)
        assert config.confidence == 0.9
        assert config.kernel_size == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
