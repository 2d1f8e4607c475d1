"""Bounded FIFO that hands decoded waveforms from the acquisition thread to consumers."""

from __future__ import annotations

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

WAVEFORM_RING_CAPACITY = 8


class RingBuffer(Generic[T]):
    """Fixed ring of slots with a power-of-two size; holds at most capacity - 1 items."""

    def __init__(self, capacity: int = WAVEFORM_RING_CAPACITY) -> None:
        if capacity < 1 or capacity & (capacity - 1):
            raise ValueError(f"capacity must be a power of two, got {capacity}")
        self._capacity = capacity
        self._mask = capacity - 1
        self._slots: list[Optional[T]] = [None] * capacity
        self._head = 0
        self._tail = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, item: T) -> bool:
        """Store an item; return False and drop it if the buffer is full."""
        with self._lock:
            following = (self._head + 1) & self._mask
            if following == self._tail:
                return False
            self._slots[self._head] = item
            self._head = following
            return True

    def pop(self) -> T:
        """Remove and return the oldest item; raise IndexError if empty."""
        with self._lock:
            if self._tail == self._head:
                raise IndexError("pop from an empty ring buffer")
            item = self._slots[self._tail]
            self._slots[self._tail] = None
            self._tail = (self._tail + 1) & self._mask
            return item

    def peek_latest(self) -> T:
        """Return the newest item without removing it; raise IndexError if empty."""
        with self._lock:
            if self._tail == self._head:
                raise IndexError("peek into an empty ring buffer")
            return self._slots[(self._head - 1) & self._mask]

    def is_empty(self) -> bool:
        with self._lock:
            return self._head == self._tail

    def __len__(self) -> int:
        with self._lock:
            return (self._head - self._tail + self._capacity) & self._mask