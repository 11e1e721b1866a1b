"""
Tests for Result Sinks and Error Telemetry
===========================================
"""

import logging
import threading

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import FusionResult
from modules.intelligence.analytics import Analytics
from modules.intelligence.error_log import ErrorLog
from modules.output.history_sink import HistoryItem, HistorySink
from modules.utils.logger import SignLogger, setup_logging


class TestHistorySink:
    """Test suite for the most-recent-first history."""

    def test_newest_first(self):
        history = HistorySink()
        history(FusionResult("1_POSITIVE", 0.8))
        history(FusionResult("2_NEUTRAL", 0.7))

        assert [item.sign for item in history.items()] == ["2_NEUTRAL", "1_POSITIVE"]
        assert history.latest().sign == "2_NEUTRAL"
        assert history.statistics_text() == "Total detections: 2"

    def test_max_items(self):
        history = HistorySink(max_items=3)
        for i in range(5):
            history(FusionResult(f"{i}_POSITIVE", 0.8))

        assert len(history) == 3
        assert history.total_detections == 5
        assert history.items()[0].sign == "4_POSITIVE"

    def test_clear_resets_total(self):
        history = HistorySink()
        history(FusionResult("1_POSITIVE", 0.8))
        history.clear()

        assert len(history) == 0
        assert history.latest() is None
        assert history.statistics_text() == "Total detections: 0"

    def test_item_format(self):
        item = HistoryItem("3_POSITIVE", 0.775, timestamp=0)

        assert str(item).endswith("] 3_POSITIVE (77.5%)")
        assert item.band == "medium"

    def test_bands(self):
        assert HistoryItem("X", 0.8).band == "high"
        assert HistoryItem("X", 0.5).band == "medium"
        assert HistoryItem("X", 0.49).band == "low"


class TestSignLogger:
    """Test suite for the sign event log sink."""

    def test_logs_each_sign(self, caplog):
        sign_logger = SignLogger(keep_last=2)

        with caplog.at_level(logging.INFO, logger="sign_events"):
            for i in range(3):
                sign_logger(FusionResult(f"{i}_POSITIVE", 0.8))

        assert sign_logger.total_signs == 3
        assert len(sign_logger.get_history()) == 2
        assert sign_logger.get_history(1)[0]["sign"] == "2_POSITIVE"
        assert "2_POSITIVE" in caplog.text

    def test_concurrent_writers_counted(self):
        sign_logger = SignLogger(keep_last=5)

        def write():
            for _ in range(200):
                sign_logger(FusionResult("1_POSITIVE", 0.8))

        threads = [threading.Thread(target=write) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sign_logger.total_signs == 800
        assert len(sign_logger.get_history()) == 5

    def test_setup_logging_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "logs" / "app.log"
        sign_file = tmp_path / "logs" / "signs.log"

        try:
            setup_logging(level="DEBUG", log_file=str(log_file), sign_log_file=str(sign_file))
            logging.getLogger("test").debug("hello file")
            SignLogger()(FusionResult("5_POSITIVE", 0.9))
            for handler in root.handlers + logging.getLogger("sign_events").handlers:
                handler.flush()

            assert "hello file" in log_file.read_text()
            assert "5_POSITIVE" in sign_file.read_text()
            assert "hello file" not in sign_file.read_text()
        finally:
            for handler in logging.getLogger("sign_events").handlers:
                handler.close()
            logging.getLogger("sign_events").handlers.clear()
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestAnalytics:
    """Test suite for session analytics."""

    def test_summary(self):
        analytics = Analytics()
        analytics.record_frame(True, True, fused=True)
        analytics.record_frame(True, False)
        analytics(FusionResult("1_POSITIVE", 0.8))
        analytics(FusionResult("1_POSITIVE", 0.9))
        analytics(FusionResult("2_NEUTRAL", 0.7))

        summary = analytics.get_summary()

        assert summary["total_frames"] == 2
        assert summary["gesture_rate_pct"] == 100.0
        assert summary["expression_rate_pct"] == 50.0
        assert summary["fused_pairs"] == 1
        assert summary["total_signs"] == 3
        assert summary["most_common_sign"] == "1_POSITIVE"
        assert summary["avg_confidences"]["1_POSITIVE"] == pytest.approx(0.85)

    def test_empty_summary(self):
        summary = Analytics().get_summary()

        assert summary["gesture_rate_pct"] == 0.0
        assert summary["most_common_sign"] is None


class TestErrorLog:
    """Test suite for recovered-error telemetry."""

    def test_record_and_order(self):
        errors = ErrorLog()
        errors.record("A", "first", ValueError("x"))
        errors.record("B", "second")

        recent = errors.recent_errors()
        assert [e.message for e in recent] == ["second", "first"]
        assert "ValueError" in recent[1].stack_trace
        assert recent[0].stack_trace == ""

    def test_filter_by_component(self):
        errors = ErrorLog()
        errors.record("A", "one")
        errors.record("B", "two")

        assert [e.message for e in errors.recent_errors("A")] == ["one"]

    def test_bounded(self):
        errors = ErrorLog(max_entries=100)
        for i in range(150):
            errors.record("A", f"error {i}")

        assert errors.error_count == 100
        assert errors.total_recorded == 150
        assert errors.recent_errors()[0].message == "error 149"

    def test_logged(self, caplog):
        with caplog.at_level(logging.ERROR):
            ErrorLog().record("Comp", "went wrong", RuntimeError("boom"))

        assert "Comp" in caplog.text
        assert "boom" in caplog.text

    def test_clear(self):
        errors = ErrorLog()
        errors.record("A", "x")
        errors.clear()

        assert errors.error_count == 0
        assert errors.total_recorded == 1

    def test_entry_str(self):
        errors = ErrorLog()
        errors.record("Pipeline", "frame failed", KeyError("k"))

        assert "Pipeline: frame failed" in str(errors.recent_errors()[0])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
