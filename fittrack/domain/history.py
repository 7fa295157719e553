from __future__ import annotations
from collections import deque
from typing import Deque, Generic, Iterator, List, Optional, TypeVar

R = TypeVar("R")


class ReadingHistory(Generic[R]):
    """Most recent readings, oldest first. Backs the rolling chart panels."""

    def __init__(self, maxlen: int = 60) -> None:
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self._buf: Deque[R] = deque(maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._buf.maxlen or 0

    def append(self, reading: R) -> None:
        self._buf.append(reading)

    def clear(self) -> None:
        self._buf.clear()

    def latest(self) -> Optional[R]:
        return self._buf[-1] if self._buf else None

    def series(self, attr: str) -> List[float]:
        return [float(getattr(r, attr)) for r in self._buf]

    def __len__(self) -> int:
        return len(self._buf)

    def __iter__(self) -> Iterator[R]:
        return iter(list(self._buf))
