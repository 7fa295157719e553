# conftest.py
#
# Shared fakes for facade tests:
# - FakeDriver: a SensorDriver whose readings/failures the test pushes by hand
# - FakeAuthorizer: holds the permission callback until the test answers it

import asyncio
import threading

import pytest

from fittrack.core.config import Settings
from fittrack.domain.models import AuthorizationState


class FakeDriver:
    def __init__(self, fail_on_start=None):
        self.fail_on_start = fail_on_start
        self.started = 0
        self.stopped = 0
        self._emit = None
        self._fail = None

    @property
    def running(self):
        return self.started > self.stopped

    def start(self, emit, fail):
        if self.fail_on_start is not None:
            raise self.fail_on_start
        self.started += 1
        self._emit = emit
        self._fail = fail

    def stop(self):
        self.stopped += 1

    def emit(self, reading):
        self._emit(reading)

    def fail(self, exc):
        self._fail(exc)

    def emit_from_thread(self, readings):
        t = threading.Thread(target=lambda: [self._emit(r) for r in readings])
        t.start()
        t.join()


class DriverFactory:
    """Records every driver a facade builds; the newest one is .last."""

    def __init__(self, fail_on_start=None):
        self.fail_on_start = fail_on_start
        self.built = []
        self.modes = []

    def __call__(self, mode):
        self.modes.append(mode)
        driver = FakeDriver(self.fail_on_start)
        self.built.append(driver)
        return driver

    @property
    def last(self):
        return self.built[-1]


class FakeAuthorizer:
    def __init__(self):
        self.callbacks = []

    @property
    def pending(self):
        return len(self.callbacks)

    def request(self, callback):
        self.callbacks.append(callback)

    def resolve(self, state: AuthorizationState, index: int = -1):
        self.callbacks[index](state)


async def drain(ticks: int = 5) -> None:
    """Let call_soon callbacks posted by the facade run."""
    for _ in range(ticks):
        await asyncio.sleep(0)


@pytest.fixture
def cfg(tmp_path):
    return Settings(
        _env_file=None,
        sensor_mode="sim",
        log_file=None,
        recordings_dir=str(tmp_path / "recordings"),
    )


@pytest.fixture
def driver_factory():
    return DriverFactory()


@pytest.fixture
def authorizer():
    return FakeAuthorizer()


@pytest.fixture(name="drain")
def drain_fixture():
    return drain


@pytest.fixture
def make_driver_factory():
    return DriverFactory
