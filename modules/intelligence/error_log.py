"""
Error telemetry shared by the pipeline components.

One ErrorLog is created at startup and passed to every component that
recovers from failures locally, so recovered errors stay visible
(logged and kept in a bounded history) instead of disappearing.
"""

import logging
import threading
import time
import traceback
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErrorEntry:
    """A recovered failure."""
    component: str
    message: str
    error: Optional[BaseException] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def stack_trace(self) -> str:
        if self.error is None:
            return ""
        return "".join(traceback.format_exception(
            type(self.error), self.error, self.error.__traceback__))

    def __str__(self):
        when = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.timestamp))
        detail = str(self.error) if self.error is not None else self.message
        return f"[{when}] {self.component}: {self.message} - {detail}"


class ErrorLog:
    """Thread-safe bounded history of recovered errors."""

    def __init__(self, max_entries: int = 100):
        self._entries = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._total = 0

    def record(self, component: str, message: str, error: Optional[BaseException] = None):
        """Log a recovered failure and keep it in the history."""
        entry = ErrorEntry(component, message, error)
        with self._lock:
            self._entries.append(entry)
            self._total += 1

        if error is not None:
            logger.error("[%s] %s: %s", component, message, error,
                         exc_info=(type(error), error, error.__traceback__))
        else:
            logger.error("[%s] %s", component, message)

    def recent_errors(self, component: Optional[str] = None) -> List[ErrorEntry]:
        """Newest first, optionally filtered by component."""
        with self._lock:
            entries = list(self._entries)
        entries.reverse()
        if component is not None:
            entries = [e for e in entries if e.component == component]
        return entries

    def clear(self):
        with self._lock:
            self._entries.clear()
        logger.info("Error history cleared")

    @property
    def error_count(self) -> int:
        """Errors currently retained."""
        with self._lock:
            return len(self._entries)

    @property
    def total_recorded(self) -> int:
        """Errors recorded since creation, including evicted ones."""
        with self._lock:
            return self._total
