# ec_demo/core/ring_buffer.py

from collections import deque
from typing import Deque, Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    A fixed-capacity FIFO that silently evicts its oldest entry once full.

    The same class backs the numeric sample history of the charts and the
    rendered line history of the log viewer. It is owned by the consumer
    thread, so it carries no lock.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"Ring buffer capacity must be positive, got {capacity}")
        self._capacity = capacity
        # deque(maxlen=...) drops from the left when an append would overflow.
        self._items: Deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def insert(self, item: T) -> None:
        """Appends an item, evicting the oldest one if the buffer is full."""
        self._items.append(item)

    def snapshot(self) -> List[T]:
        """Returns an oldest-first copy that stays stable for one render pass."""
        return list(self._items)

    def latest(self) -> Optional[T]:
        """Returns the newest item, or None when empty."""
        return self._items[-1] if self._items else None

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self._capacity}, len={len(self._items)})"
