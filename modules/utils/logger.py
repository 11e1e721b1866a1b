"""
Logging setup and sign event logging.

Two streams are configured: the application log (console + optional
rotating file) and the `sign_events` log, which receives one line per
finalized sign and can be split into its own file.
"""

import os
import logging
import logging.handlers
import threading
import time

SIGN_EVENTS = "sign_events"

CONSOLE_FORMAT = "%(asctime)s  %(levelname)-5s  %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)-30s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def _rotating_handler(path, level, max_size_mb, backup_count):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_size_mb * 1024 * 1024, backupCount=backup_count)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3,
                  sign_log_file=None, console_level=logging.INFO):
    """Configure the root logger and, optionally, a separate sign event file.

    Args:
        level: Root level name ("DEBUG", "INFO", ...)
        log_file: Rotating application log; everything at DEBUG and above
        sign_log_file: Optional rotating file for `sign_events` only
        console_level: Threshold for the console handler
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console)

    if log_file:
        root_logger.addHandler(
            _rotating_handler(log_file, logging.DEBUG, max_size_mb, backup_count))

    sign_logger = logging.getLogger(SIGN_EVENTS)
    sign_logger.handlers.clear()
    if sign_log_file:
        sign_logger.addHandler(
            _rotating_handler(sign_log_file, logging.INFO, max_size_mb, backup_count))

    return root_logger


class SignLogger:
    """Result sink that writes every finalized sign to the `sign_events` log.

    Written from the sink dispatcher thread; reads are safe from any thread.
    """

    def __init__(self, keep_last: int = 100):
        self.logger = logging.getLogger(SIGN_EVENTS)
        self._keep_last = keep_last
        self._entries = []
        self._total = 0
        self._lock = threading.Lock()

    def __call__(self, result):
        self.log_sign(result.detected_sign, result.confidence)

    def log_sign(self, sign, confidence):
        """Log a finalized sign and keep it in the recent list."""
        with self._lock:
            self._entries.append({"timestamp": time.time(), "sign": sign, "confidence": confidence})
            del self._entries[:-self._keep_last]
            self._total += 1
        self.logger.info("Sign: %-20s | Confidence: %.2f", sign, confidence)

    def get_history(self, last_n=None):
        """Retained entries, oldest first (at most `keep_last`)."""
        with self._lock:
            if last_n:
                return self._entries[-last_n:]
            return list(self._entries)

    @property
    def total_signs(self):
        """Signs logged since creation, including ones no longer retained."""
        with self._lock:
            return self._total
