"""
Most-recent-first history of finalized signs, as shown in a history panel.
"""

import time
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from core.types import FusionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryItem:
    """A finalized sign as displayed to the user."""
    sign: str
    confidence: float
    timestamp: float = field(default_factory=time.time)

    @property
    def band(self) -> str:
        """Confidence band used for styling: high / medium / low."""
        if self.confidence >= 0.8:
            return "high"
        if self.confidence >= 0.5:
            return "medium"
        return "low"

    def __str__(self):
        clock = time.strftime("%H:%M:%S", time.localtime(self.timestamp))
        return f"[{clock}] {self.sign} ({self.confidence * 100:.1f}%)"


class HistorySink:
    """Collects finalized results, newest first.

    Called from the sink dispatcher thread; reads are safe from any thread.
    """

    def __init__(self, max_items: Optional[int] = None):
        self._max_items = max_items
        self._items: List[HistoryItem] = []
        self._total = 0
        self._lock = threading.Lock()

    def __call__(self, result: FusionResult):
        item = HistoryItem(result.detected_sign, result.confidence)
        with self._lock:
            self._items.insert(0, item)
            self._total += 1
            if self._max_items is not None:
                del self._items[self._max_items:]
        logger.debug("New detection added to history: %s", item)

    def items(self) -> List[HistoryItem]:
        with self._lock:
            return list(self._items)

    def latest(self) -> Optional[HistoryItem]:
        with self._lock:
            return self._items[0] if self._items else None

    def clear(self):
        with self._lock:
            self._items.clear()
            self._total = 0
        logger.info("History cleared")

    def statistics_text(self) -> str:
        return f"Total detections: {self.total_detections}"

    @property
    def total_detections(self) -> int:
        with self._lock:
            return self._total

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
