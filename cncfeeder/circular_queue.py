"""A bounded, thread-safe FIFO of bytes."""

from __future__ import annotations

import threading

QUEUE_SIZE = 4096


class QueueFullError(Exception):
    """Raised when not all bytes fit; `accepted` tells how many were stored."""

    def __init__(self, accepted: int, requested: int) -> None:
        super().__init__(f"queue full: stored {accepted} of {requested} bytes")
        self.accepted = accepted
        self.requested = requested


class CircularQueue:
    """Fixed-capacity byte queue guarded by a lock, with a high-water mark."""

    def __init__(self, capacity: int = QUEUE_SIZE) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._lock = threading.Lock()
        self._data = bytearray()
        self._max_size = 0

    def reset(self) -> None:
        """Discard all bytes and clear the high-water mark."""
        with self._lock:
            self._data.clear()
            self._max_size = 0

    def put(self, data: bytes) -> None:
        """Append bytes; stores what fits and raises QueueFullError for the rest."""
        with self._lock:
            room = self.capacity - len(self._data)
            accepted = min(room, len(data))
            self._data.extend(data[:accepted])
            self._max_size = max(self._max_size, len(self._data))
        if accepted < len(data):
            raise QueueFullError(accepted, len(data))

    def get(self, length: int) -> bytes:
        """Remove and return up to `length` bytes from the front."""
        with self._lock:
            chunk = bytes(self._data[:length])
            del self._data[:length]
        return chunk

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def is_empty(self) -> bool:
        return len(self) == 0

    def is_full(self) -> bool:
        return len(self) == self.capacity

    def space_left(self) -> int:
        """Free space, keeping one byte in reserve."""
        return self.capacity - len(self) - 1

    def max_size(self) -> int:
        """Largest number of bytes held since the last reset."""
        with self._lock:
            return self._max_size

    def status(self) -> str:
        with self._lock:
            size, peak = len(self._data), self._max_size
        return f"Queue size: {size}, max: {peak}"