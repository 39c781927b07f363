"""Bounded, closable FIFO queue used between pipeline stages."""

import threading
from collections import deque
from typing import Any

from colorrun.core.errors import PipelineCancelled, QueueClosedError
from colorrun.pipeline.data import END_OF_STREAM

# Seconds between cancellation checks while blocked
POLL_INTERVAL = 0.1


class BoundedQueue:
    """Fixed-capacity FIFO handoff between one producer and one consumer.

    ``put`` blocks while the queue is full and ``get`` blocks while it is
    empty. Once ``close`` has been called no more items are accepted, and
    ``get`` returns ``END_OF_STREAM`` after the remaining items are drained.
    Both blocking calls take an optional cancellation event and raise
    ``PipelineCancelled`` as soon as it is set.
    """

    def __init__(self, maxsize: int, name: str = "queue"):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self.name = name
        self._items: deque = deque()
        self._closed = False
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    def put(self, item: Any, cancel: threading.Event | None = None) -> None:
        """Append an item, blocking while the queue is full."""
        with self._not_full:
            while True:
                if self._closed:
                    raise QueueClosedError(f"{self.name} is closed")
                if cancel is not None and cancel.is_set():
                    raise PipelineCancelled(f"put on {self.name} cancelled")
                if len(self._items) < self.maxsize:
                    break
                self._not_full.wait(POLL_INTERVAL)
            self._items.append(item)
            self._not_empty.notify()

    def get(self, cancel: threading.Event | None = None) -> Any:
        """Remove and return the oldest item, blocking while empty.

        Returns ``END_OF_STREAM`` once the queue is closed and drained.
        """
        with self._not_empty:
            while not self._items:
                if self._closed:
                    return END_OF_STREAM
                if cancel is not None and cancel.is_set():
                    raise PipelineCancelled(f"get on {self.name} cancelled")
                self._not_empty.wait(POLL_INTERVAL)
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def close(self) -> None:
        """Signal that no more items will be put. May only be called once."""
        with self._lock:
            if self._closed:
                raise QueueClosedError(f"{self.name} already closed")
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def drained(self) -> bool:
        """True once the queue is closed and every item has been taken."""
        with self._lock:
            return self._closed and not self._items

    def qsize(self) -> int:
        with self._lock:
            return len(self._items)

    def __len__(self) -> int:
        return self.qsize()

    def __repr__(self) -> str:
        return f"BoundedQueue(name={self.name!r}, size={self.qsize()}/{self.maxsize}, closed={self.closed})"
