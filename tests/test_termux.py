# test_termux.py
#
# termux-api driver layer: JSON stream framing, conversions to readings,
# authorization probe mapping and process lifecycle with a fake Popen.

import asyncio
import io
import subprocess
import threading
import time

import pytest

from fittrack.core.errors import DriverError, HardwareUnavailable
from fittrack.domain.models import AuthorizationState, FacadeLifecycleState as S, SourceMode
from fittrack.drivers.termux import (
    TermuxAuthorizer,
    TermuxCommand,
    TermuxJsonStream,
    classify_probe,
    iter_json_objects,
)
from fittrack.sensors.termux_sources import (
    TermuxLocationSource,
    TermuxMotionSource,
    location_argv,
    sensor_argv,
)
from fittrack.services.facade import SensorFacade


SENSOR_OUTPUT = """\
{
  "BMI160 Accelerometer": {
    "values": [
      0.0,
      9.80665,
      -4.903325
    ]
  },
  "BMI160 Gyroscope": {
    "values": [
      0.1,
      -0.2,
      0.3
    ]
  }
}
{
  "BMI160 Accelerometer": {
    "values": [1.0, 2.0, 3.0]
  }
}
"""


# -----------------------------
# stream framing
# -----------------------------

def test_multiline_objects_are_framed():
    objs = list(iter_json_objects(io.StringIO(SENSOR_OUTPUT)))
    assert len(objs) == 2
    assert "BMI160 Gyroscope" in objs[0]


def test_malformed_object_is_skipped():
    text = "{\n  \"a\": ,\n}\n{\"b\": 1}\n"
    assert list(iter_json_objects(io.StringIO(text))) == [{"b": 1}]


def test_blank_lines_between_objects_ignored():
    text = "\n\n{\"a\": 1}\n\n{\"b\": 2}\n"
    assert list(iter_json_objects(io.StringIO(text))) == [{"a": 1}, {"b": 2}]


# -----------------------------
# conversions
# -----------------------------

def test_motion_conversion_to_g_and_rotation():
    src = TermuxMotionSource(stream=None)
    first, second = iter_json_objects(io.StringIO(SENSOR_OUTPUT))
    r = src.convert(first)
    assert r.acceleration_y == pytest.approx(1.0)
    assert r.acceleration_z == pytest.approx(-0.5)
    assert (r.rotation_rate_x, r.rotation_rate_y, r.rotation_rate_z) == (0.1, -0.2, 0.3)

    # gyro block missing: last gyro values are reused
    r2 = src.convert(second)
    assert r2.rotation_rate_y == -0.2


def test_motion_needs_accelerometer_first():
    src = TermuxMotionSource(stream=None)
    assert src.convert({"Gyroscope": {"values": [1, 2, 3]}}) is None


def test_location_conversion():
    r = TermuxLocationSource.convert({"latitude": 1.5, "longitude": -2.5, "accuracy": 4.0})
    assert r.coordinate == (1.5, -2.5)
    assert r.accuracy_m == 4.0


def test_location_without_coordinates_is_driver_error():
    with pytest.raises(DriverError):
        TermuxLocationSource.convert({"provider": "gps"})


def test_argv_builders():
    assert sensor_argv("termux-sensor", "accelerometer,gyroscope", 16) == [
        "termux-sensor", "-s", "accelerometer,gyroscope", "-d", "16",
    ]
    assert location_argv("termux-location") == ["termux-location", "-p", "gps", "-r", "updates"]


# -----------------------------
# authorization probe
# -----------------------------

def _result(stdout="", stderr="", code=0):
    return subprocess.CompletedProcess(args=["x"], returncode=code, stdout=stdout, stderr=stderr)


def test_classify_probe_states():
    assert classify_probe(_result('{"sensors": []}')) is AuthorizationState.GRANTED
    assert classify_probe(_result("", "Permission denial")) is AuthorizationState.DENIED
    assert classify_probe(_result('{"API_ERROR": "GPS disabled"}')) is AuthorizationState.RESTRICTED
    assert classify_probe(_result("", "", code=1)) is AuthorizationState.RESTRICTED


def _answer(authorizer):
    done = threading.Event()
    got = []

    def cb(state):
        got.append(state)
        done.set()

    authorizer.request(cb)
    assert done.wait(2.0)
    return got[0]


def test_authorizer_runs_probe_off_thread():
    calls = []

    def runner(argv, timeout):
        calls.append((list(argv), timeout, threading.current_thread().name))
        return _result("{}")

    auth = TermuxAuthorizer(["termux-sensor", "-l"], timeout=3.0, runner=runner)
    assert _answer(auth) is AuthorizationState.GRANTED
    assert calls[0][0] == ["termux-sensor", "-l"]
    assert calls[0][2] == "termux_authorizer"


def test_authorizer_missing_tool_is_restricted():
    def runner(argv, timeout):
        raise FileNotFoundError(argv[0])

    assert _answer(TermuxAuthorizer(["nope"], runner=runner)) is AuthorizationState.RESTRICTED


def test_authorizer_timeout_is_undetermined():
    def runner(argv, timeout):
        raise subprocess.TimeoutExpired(argv, timeout)

    assert _answer(TermuxAuthorizer(["slow"], runner=runner)) is AuthorizationState.NOT_DETERMINED


# -----------------------------
# process lifecycle
# -----------------------------

class FakeProcess:
    def __init__(self, text):
        self.stdout = io.StringIO(text)
        self.terminated = False

    def poll(self):
        return 0

    def terminate(self):
        self.terminated = True

    def wait(self, timeout=None):
        return 0

    def kill(self):
        pass


def test_stream_delivers_objects_then_reports_exit():
    proc = FakeProcess(SENSOR_OUTPUT)
    stream = TermuxJsonStream(TermuxCommand(["termux-sensor"], name="motion"), popen=lambda *a, **k: proc)
    objs, errors = [], []
    done = threading.Event()

    def on_error(e):
        errors.append(e)
        done.set()

    stream.start(objs.append, on_error)
    assert done.wait(2.0)
    stream.stop()
    assert len(objs) == 2
    assert isinstance(errors[0], DriverError)
    assert proc.terminated


def test_stream_error_object_is_driver_error():
    proc = FakeProcess('{"API_ERROR": "Location service disabled"}\n{"latitude": 1}\n')
    stream = TermuxJsonStream(TermuxCommand(["termux-location"], name="location"), popen=lambda *a, **k: proc)
    objs, errors = [], []
    done = threading.Event()

    def on_error(e):
        errors.append(e)
        done.set()

    stream.start(objs.append, on_error)
    assert done.wait(2.0)
    stream.stop()
    assert objs == []
    assert "Location service disabled" in str(errors[0])


def test_missing_binary_is_hardware_unavailable():
    def popen(*a, **k):
        raise FileNotFoundError("termux-sensor")

    stream = TermuxJsonStream(TermuxCommand(["termux-sensor"]), popen=popen)
    with pytest.raises(HardwareUnavailable):
        stream.start(lambda o: None, lambda e: None)
    assert not stream.running


class StubbornProcess(FakeProcess):
    """Ignores SIGTERM: wait(timeout) runs out, only kill() ends it."""

    def __init__(self):
        super().__init__("")
        self.killed = threading.Event()
        self.reaped = threading.Event()

    def wait(self, timeout=None):
        if timeout is not None and not self.killed.is_set():
            self.killed.wait(timeout)
            raise subprocess.TimeoutExpired("termux-sensor", timeout)
        self.reaped.set()
        return -9

    def kill(self):
        self.killed.set()


def test_stop_returns_without_waiting_for_the_process():
    proc = StubbornProcess()
    stream = TermuxJsonStream(TermuxCommand(["termux-sensor"], name="motion"), popen=lambda *a, **k: proc)
    stream.REAP_TIMEOUT_S = 0.3
    stream.start(lambda o: None, lambda e: None)

    t0 = time.monotonic()
    reaper = stream.stop()
    assert time.monotonic() - t0 < 0.2
    assert proc.terminated
    assert not stream.running

    reaper.join(2.0)
    assert proc.killed.is_set()
    assert proc.reaped.is_set()


def test_stream_uses_no_stderr_pipe():
    seen = {}

    def popen(argv, **kwargs):
        seen.update(kwargs)
        return FakeProcess("")

    stream = TermuxJsonStream(TermuxCommand(["termux-sensor"]), popen=popen)
    stream.start(lambda o: None, lambda e: None)
    stream.stop()
    assert seen["stderr"] is subprocess.DEVNULL


# -----------------------------
# malformed values
# -----------------------------

def test_null_sensor_value_is_driver_error():
    src = TermuxMotionSource(stream=None)
    with pytest.raises(DriverError):
        src.convert({"BMI160 Accelerometer": {"values": [None, 0.0, 9.8]}})


def test_null_sensor_value_stops_live_facade():
    proc = FakeProcess('{"BMI160 Accelerometer": {"values": [null, 0.0, 9.8]}}\n')
    stream = TermuxJsonStream(TermuxCommand(["termux-sensor"], name="motion"), popen=lambda *a, **k: proc)

    async def scenario():
        f = SensorFacade(SourceMode.LIVE, lambda mode: TermuxMotionSource(stream))
        f.start()
        assert f.state is S.ACTIVE
        for _ in range(100):
            if f.state is S.STOPPED:
                break
            await asyncio.sleep(0.02)
        return f

    f = asyncio.run(scenario())
    assert f.state is S.STOPPED
    assert isinstance(f.last_error, DriverError)
    assert "values" in str(f.last_error)
    assert proc.terminated
