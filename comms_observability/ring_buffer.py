"""Fixed-capacity, newest-first collection used by every collector buffer."""

import threading
from collections import deque
from typing import Deque, Generic, List, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Bounded buffer that keeps the most recent ``capacity`` items.

    Items are prepended on ``push``; once the buffer is full the oldest item
    (the tail) is evicted. A lock guards push/evict so the buffer can be
    written from excepthooks and HTTP worker threads.
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, item: T) -> None:
        """Add an item as the newest entry, evicting the oldest when full."""
        with self._lock:
            self._items.appendleft(item)

    def all(self) -> List[T]:
        """Contents, newest first."""
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self._capacity}, size={len(self._items)})"
