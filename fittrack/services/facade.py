from __future__ import annotations

import logging
from typing import Callable, Generic, List, Optional, TypeVar, Union

from ..core.dispatch import UIDispatcher
from ..core.errors import AuthorizationDenied, HardwareUnavailable, SensorError
from ..domain.history import ReadingHistory
from ..domain.interfaces import Authorizer, SensorDriver
from ..domain.models import (
    UNAVAILABLE,
    AuthorizationState,
    FacadeLifecycleState,
    SourceMode,
    Unavailable,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

State = FacadeLifecycleState


class SensorFacade(Generic[R]):
    """
    One sensor, one active source, uniform behaviour for live and simulated data.

    Lifecycle: IDLE -> STARTING -> ACTIVE -> STOPPED (STOPPED may start again).
    start()/stop() must be called on the UI loop; they never block. Readings
    and authorization results produced elsewhere are re-posted to the UI loop
    through the dispatcher before any observable state changes.

    Every start() opens a new generation. Callbacks tagged with an older
    generation (authorization answered after stop(), a reading from a source
    that was already released) are dropped.
    """

    kind = "sensor"

    def __init__(
        self,
        mode: SourceMode,
        source_factory: Callable[[SourceMode], SensorDriver[R]],
        authorizer: Optional[Authorizer] = None,
        *,
        dispatcher: Optional[UIDispatcher] = None,
        history_size: int = 60,
        available: bool = True,
    ) -> None:
        self.mode = mode
        self._source_factory = source_factory
        self._authorizer = authorizer
        self._dispatcher = dispatcher or UIDispatcher()

        self._state = State.IDLE
        self._generation = 0
        self._source: Optional[SensorDriver[R]] = None
        self._latest: Union[R, Unavailable] = UNAVAILABLE

        self.authorization_state = AuthorizationState.NOT_DETERMINED
        self.is_available = available
        self.last_error: Optional[BaseException] = None
        self.readings_delivered = 0
        self.history: ReadingHistory[R] = ReadingHistory(history_size)

        self._reading_subs: List[Callable[[R], None]] = []
        self._state_subs: List[Callable[["SensorFacade[R]"], None]] = []

    # --- observable state ---

    @property
    def state(self) -> FacadeLifecycleState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is State.ACTIVE

    def latest_reading(self) -> Union[R, Unavailable]:
        return self._latest

    def subscribe(self, callback: Callable[[R], None]) -> Callable[[], None]:
        """Called with every new reading, on the UI loop. Returns an unsubscribe function."""
        self._reading_subs.append(callback)
        return lambda: self._unsubscribe(self._reading_subs, callback)

    def subscribe_state(self, callback: Callable[["SensorFacade[R]"], None]) -> Callable[[], None]:
        """Called after any lifecycle or flag change, on the UI loop."""
        self._state_subs.append(callback)
        return lambda: self._unsubscribe(self._state_subs, callback)

    @staticmethod
    def _unsubscribe(subs: list, callback) -> None:
        if callback in subs:
            subs.remove(callback)

    # --- control ---

    def start(self) -> None:
        if self._state in (State.STARTING, State.ACTIVE):
            return
        self._dispatcher.bind()
        self.mode = self._resolve_mode()
        self._generation += 1
        gen = self._generation
        self.last_error = None
        self._set_state(State.STARTING)

        if self.mode is SourceMode.SIMULATED or self._authorizer is None:
            self._activate(gen)
            return

        logger.info("%s: requesting authorization", self.kind)
        self._authorizer.request(
            lambda status: self._dispatcher.post(self._on_authorization, gen, status)
        )

    def stop(self) -> None:
        if self._state in (State.IDLE, State.STOPPED):
            return
        # invalidate anything still in flight for this run
        self._generation += 1
        self._release()
        self._set_state(State.STOPPED)

    # --- hooks for subclasses ---

    def _resolve_mode(self) -> SourceMode:
        return self.mode

    def _accept(self, reading: R) -> R:
        """Last chance to enrich a reading before it becomes observable."""
        return reading

    def _did_activate(self) -> None:
        pass

    def _will_release(self) -> None:
        pass

    def _absorb(self, exc: BaseException) -> None:
        """Turn an error into state. Never re-raises."""
        self.last_error = exc
        if isinstance(exc, HardwareUnavailable):
            self.is_available = False
            logger.warning("%s: hardware unavailable: %s", self.kind, exc)
        elif isinstance(exc, AuthorizationDenied):
            self.authorization_state = AuthorizationState.DENIED
            logger.warning("%s: authorization denied: %s", self.kind, exc)
        elif isinstance(exc, SensorError):
            logger.error("%s: %s: %s", self.kind, type(exc).__name__, exc)
        else:
            logger.error("%s: unexpected failure: %s", self.kind, exc, exc_info=exc)

    # --- internals (UI loop only) ---

    def _on_authorization(self, gen: int, status: AuthorizationState) -> None:
        self.authorization_state = status

        if gen != self._generation or self._state is not State.STARTING:
            logger.info("%s: discarding stale authorization result (%s)", self.kind, status.value)
            self._notify_state()
            return

        if status is AuthorizationState.GRANTED:
            self._activate(gen)
        elif status is AuthorizationState.NOT_DETERMINED:
            # Prompt still pending; no timeout, stay in STARTING
            logger.info("%s: authorization not determined yet", self.kind)
            self._notify_state()
        else:
            logger.warning("%s: authorization %s, not starting", self.kind, status.value)
            self._set_state(State.STOPPED)

    def _activate(self, gen: int) -> None:
        try:
            source = self._source_factory(self.mode)
            source.start(
                lambda reading: self._dispatcher.post(self._on_reading, gen, reading),
                lambda exc: self._dispatcher.post(self._on_failure, gen, exc),
            )
        except Exception as e:
            self._absorb(e)
            self._set_state(State.STOPPED)
            return

        self._source = source
        logger.info("%s: active (%s)", self.kind, self.mode.value)
        self._set_state(State.ACTIVE)
        self._did_activate()

    def _release(self) -> None:
        self._will_release()
        source, self._source = self._source, None
        if source is None:
            return
        try:
            source.stop()
        except Exception as e:
            self._absorb(e)

    def _on_reading(self, gen: int, reading: R) -> None:
        if gen != self._generation or self._state is not State.ACTIVE:
            return
        reading = self._accept(reading)
        self._latest = reading
        self.history.append(reading)
        self.readings_delivered += 1
        for cb in list(self._reading_subs):
            try:
                cb(reading)
            except Exception:
                logger.exception("%s: reading subscriber failed", self.kind)

    def _on_failure(self, gen: int, exc: BaseException) -> None:
        if gen != self._generation or self._state is not State.ACTIVE:
            return
        # terminal until the consumer calls start() again; last reading stays
        self._absorb(exc)
        self._generation += 1
        self._release()
        self._set_state(State.STOPPED)

    def _set_state(self, state: FacadeLifecycleState) -> None:
        if state is self._state:
            return
        logger.debug("%s: %s -> %s", self.kind, self._state.value, state.value)
        self._state = state
        self._notify_state()

    def _notify_state(self) -> None:
        for cb in list(self._state_subs):
            try:
                cb(self)
            except Exception:
                logger.exception("%s: state subscriber failed", self.kind)
