from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class UIDispatcher:
    """
    Funnels every consumer-visible mutation onto a single event loop.
    Driver threads and timers call post(); the callable then runs on the loop.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("UIDispatcher is not bound to an event loop")
        return self._loop

    def bind(self) -> asyncio.AbstractEventLoop:
        """Bind to the running loop (first call wins). Must run on the UI loop."""
        running = asyncio.get_running_loop()
        if self._loop is None or self._loop.is_closed():
            self._loop = running
        return self._loop

    def on_ui_context(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        loop = self.loop
        if self.on_ui_context():
            loop.call_soon(fn, *args)
            return
        try:
            loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            # Loop already closed: late driver callback after shutdown
            logger.debug("Dropping %r posted after UI loop closed", fn)
