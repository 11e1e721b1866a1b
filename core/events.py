"""
Typed output channels for stage-to-stage and stage-to-sink delivery.

Each pipeline stage owns a Channel; consumers attach a handle when the
stage is constructed instead of implementing a listener interface.
Sinks that must not run on the worker thread sit behind an
AsyncDispatcher, which delivers on its own thread in emission order.

Usage:
    dispatcher = AsyncDispatcher([history_sink, sign_logger])
    engine = FusionEngine(smoother, subscribers=[dispatcher.submit])
"""

import logging
import queue
import threading
from typing import Callable, Generic, Iterable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _handler_name(handler) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__


class Channel(Generic[T]):
    """Thread-safe fan-out channel for one item type.

    Handlers run synchronously on the publishing thread, in attach order.
    A failing handler is logged and does not stop delivery to the rest.
    """

    def __init__(self, name: str, subscribers: Iterable[Callable[[T], None]] = ()):
        self._name = name
        self._handlers: List[Callable[[T], None]] = []
        self._lock = threading.Lock()
        self._published = 0
        for handler in subscribers:
            self.attach(handler)

    def attach(self, handler: Callable[[T], None]):
        """Attach a handle that receives every published item."""
        with self._lock:
            self._handlers.append(handler)
        logger.debug("Attached to channel '%s': %s", self._name, _handler_name(handler))

    def detach(self, handler: Callable[[T], None]):
        with self._lock:
            self._handlers = [h for h in self._handlers if h != handler]

    def publish(self, item: T):
        """Deliver an item to all attached handles."""
        with self._lock:
            handlers = list(self._handlers)
            self._published += 1

        for handler in handlers:
            try:
                handler(item)
            except Exception as e:
                logger.error("Channel handler error [%s -> %s]: %s",
                             self._name, _handler_name(handler), e)

    @property
    def name(self) -> str:
        return self._name

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    @property
    def published_count(self) -> int:
        with self._lock:
            return self._published


class AsyncDispatcher(Generic[T]):
    """Delivers items to sinks on a dedicated daemon thread.

    `submit` never blocks the caller; sinks see items in submission order.
    The first `submit` starts delivery. Once `stop()` has been called, late
    submissions are dropped until `start()` is called explicitly again.
    """

    _STOP = object()

    def __init__(self, sinks: Iterable[Callable[[T], None]] = (), name: str = "sink-dispatcher"):
        self._channel: Channel[T] = Channel(name, sinks)
        self._queue: "queue.Queue" = queue.Queue()
        self._name = name
        self._thread = None
        self._running = False
        self._stopped = False
        self._dropped = 0
        self._lock = threading.Lock()

    def attach(self, sink: Callable[[T], None]):
        self._channel.attach(sink)

    def start(self):
        """Start the delivery thread (idempotent)."""
        with self._lock:
            started = self._start_locked()
        if started:
            logger.info("Sink dispatcher started (%d sinks)", self._channel.subscriber_count)

    def _start_locked(self) -> bool:
        if self._running:
            return False
        if self._thread is not None and self._thread.is_alive():
            # Previous thread is still draining up to its stop marker
            logger.warning("Sink dispatcher '%s' has not finished stopping; start refused", self._name)
            return False
        self._running = True
        self._stopped = False
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        return True

    def submit(self, item: T):
        """Queue an item for delivery (fire-and-forget)."""
        with self._lock:
            if self._stopped:
                self._dropped += 1
                dropped = True
            else:
                dropped = False
                self._start_locked()
                self._queue.put(item)
        if dropped:
            logger.warning("Sink dispatcher '%s' is stopped; dropped %r", self._name, item)

    def _run(self):
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                self._channel.publish(item)
            finally:
                self._queue.task_done()

    def flush(self):
        """Block until every queued item has been delivered."""
        if self._running:
            self._queue.join()

    def stop(self, timeout: float = 2.0):
        """Deliver what is queued, then stop the thread."""
        with self._lock:
            self._stopped = True
            if not self._running:
                return
            self._running = False
            self._queue.put(self._STOP)
            thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)
        logger.info("Sink dispatcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Items rejected because they arrived after `stop()`."""
        with self._lock:
            return self._dropped
