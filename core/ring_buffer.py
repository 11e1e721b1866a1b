"""
Thread-safe bounded FIFO used for histories that are written by the
worker thread and read from other threads.
"""

import threading
from collections import deque
from typing import Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Fixed-capacity FIFO with strict oldest-first eviction.

    Single writer, many readers: every read returns an immutable snapshot
    taken under the lock, so readers never observe a half-applied append.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._items = deque()
        self._lock = threading.Lock()

    def append(self, item: T) -> List[T]:
        """Append an item and return whatever was evicted (oldest first)."""
        evicted = []
        with self._lock:
            self._items.append(item)
            while len(self._items) > self._capacity:
                evicted.append(self._items.popleft())
        return evicted

    def snapshot(self) -> Tuple[T, ...]:
        """All items, oldest to newest."""
        with self._lock:
            return tuple(self._items)

    def latest(self, count: int) -> Tuple[T, ...]:
        """The most recent `count` items, oldest to newest."""
        if count <= 0:
            return ()
        with self._lock:
            return tuple(self._items)[-count:]

    def peek_newest(self) -> Optional[T]:
        with self._lock:
            return self._items[-1] if self._items else None

    def clear(self):
        with self._lock:
            self._items.clear()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self):
        return iter(self.snapshot())
