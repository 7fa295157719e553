from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from ..domain.interfaces import Emit, Fail

logger = logging.getLogger(__name__)

R = TypeVar("R")


class TimerSource(ABC, Generic[R]):
    """
    Emits one reading per period from an asyncio task on the running loop.
    Deadline-based scheduling keeps the cadence from drifting.
    """

    name = "timer"

    def __init__(self, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.interval_s = float(interval_s)
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self, emit: Emit[R], fail: Fail) -> None:
        if self._task is not None:
            return
        self._stop = asyncio.Event()
        self._on_start()
        self._task = asyncio.get_running_loop().create_task(
            self._run(emit, fail), name=f"{self.name}_loop"
        )

    def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            self._on_stop()

    def _on_start(self) -> None:
        """Acquire resources before the first tick. Raise SensorError on failure."""

    def _on_stop(self) -> None:
        """Release whatever _on_start acquired."""

    @abstractmethod
    def generate(self) -> R:
        """Produce the next reading. Raise on failure."""
        ...

    async def _run(self, emit: Emit[R], fail: Fail) -> None:
        loop = asyncio.get_running_loop()
        logger.info("%s loop started (interval=%.4fs)", self.name, self.interval_s)
        deadline = loop.time()

        while not self._stop.is_set():
            try:
                reading = self.generate()
            except Exception as e:
                logger.exception("%s generate failed: %s", self.name, e)
                fail(e)
                return
            emit(reading)

            deadline += self.interval_s
            now = loop.time()
            if deadline < now:
                # fell behind (slow tick); don't burst to catch up
                deadline = now
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=deadline - now)
            except asyncio.TimeoutError:
                pass

        logger.info("%s loop stopped", self.name)
