from __future__ import annotations
from typing import Callable, Protocol, TypeVar, runtime_checkable
from .models import AuthorizationState

R = TypeVar("R")

Emit = Callable[[R], None]
Fail = Callable[[BaseException], None]


@runtime_checkable
class SensorDriver(Protocol[R]):
    """
    Anything that produces readings: live hardware adapters and synthetic
    generators alike. emit/fail may be called from any thread.
    """

    def start(self, emit: Emit[R], fail: Fail) -> None:
        ...

    def stop(self) -> None:
        ...


@runtime_checkable
class Authorizer(Protocol):
    """Asynchronous permission request; the callback may fire on any thread."""

    def request(self, callback: Callable[[AuthorizationState], None]) -> None:
        ...
