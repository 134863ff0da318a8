from __future__ import annotations

from typing import Generic, Optional, Tuple, TypeVar
from queue import Queue, Full, Empty

T = TypeVar("T")


class BoundedQueue(Generic[T]):
    """
    Fixed-capacity FIFO shared between one producer side and one consumer thread.

    When the queue is full, `put` waits at most ``timeout`` seconds and then
    drops the NEW item (the queued ones are kept) and returns False. Drops are
    counted so owners can report them.
    """

    def __init__(self, maxsize: int, name: str) -> None:
        if not isinstance(maxsize, int) or maxsize <= 0:
            raise ValueError("maxsize must be a positive integer")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("name must be a non-empty string")
        self._name = name
        self._maxsize = maxsize
        self._accepted = 0
        self._dropped = 0
        self._q: Queue[T] = Queue(maxsize=maxsize)

    def put(self, item: T, timeout: float) -> bool:
        """Enqueue ``item``; False means it was dropped."""
        try:
            self._q.put(item, timeout=timeout)
        except Full:
            self._dropped += 1
            return False
        self._accepted += 1
        return True

    def get(self, timeout: float) -> Tuple[bool, Optional[T]]:
        """(True, item), or (False, None) if nothing arrived within ``timeout``."""
        try:
            return True, self._q.get(timeout=timeout)
        except Empty:
            return False, None

    def qsize(self) -> int:
        return self._q.qsize()

    def maxsize(self) -> int:
        return self._maxsize

    def accepted(self) -> int:
        return self._accepted

    def dropped(self) -> int:
        return self._dropped

    def name(self) -> str:
        return self._name
