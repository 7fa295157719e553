from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from ..core.errors import DriverError
from ..domain.conversions import ms2_to_g, normalize_heading, true_heading
from ..domain.interfaces import Emit, Fail
from ..domain.models import HeadingReading, LocationReading, MotionReading
from ..drivers.termux import TermuxCommand, TermuxJsonStream

logger = logging.getLogger(__name__)


def sensor_argv(cmd: str, sensors: str, delay_ms: int) -> list[str]:
    return [cmd, "-s", sensors, "-d", str(int(delay_ms))]


def location_argv(cmd: str) -> list[str]:
    return [cmd, "-p", "gps", "-r", "updates"]


def _values(obj: dict[str, Any], *needles: str) -> Optional[Sequence[float]]:
    """First sensor block whose name contains any needle (case-insensitive)."""
    for name, block in obj.items():
        if not isinstance(block, dict):
            continue
        lname = name.lower()
        if any(n in lname for n in needles):
            values = block.get("values")
            if isinstance(values, list) and len(values) >= 3:
                try:
                    return [float(v) for v in values[:3]]
                except (TypeError, ValueError) as e:
                    raise DriverError(f"Malformed {name} values: {values!r}") from e
    return None


class TermuxMotionSource:
    """
    Accelerometer + gyroscope from one termux-sensor stream.
    Android reports m/s^2; readings carry g like the rest of the app.
    """

    name = "motion_termux"

    def __init__(self, stream: TermuxJsonStream) -> None:
        self._stream = stream
        self._accel: Optional[Sequence[float]] = None
        self._gyro: Optional[Sequence[float]] = None

    def start(self, emit: Emit[MotionReading], fail: Fail) -> None:
        self._accel = self._gyro = None

        def on_object(obj: dict[str, Any]) -> None:
            reading = self.convert(obj)
            if reading is not None:
                emit(reading)

        self._stream.start(on_object, fail)

    def stop(self) -> None:
        self._stream.stop()

    def convert(self, obj: dict[str, Any]) -> Optional[MotionReading]:
        accel = _values(obj, "accel")
        gyro = _values(obj, "gyro")
        if accel is not None:
            self._accel = accel
        if gyro is not None:
            self._gyro = gyro
        if self._accel is None:
            return None
        gx, gy, gz = self._gyro if self._gyro is not None else (0.0, 0.0, 0.0)
        ax, ay, az = self._accel
        return MotionReading(
            acceleration_x=ms2_to_g(ax),
            acceleration_y=ms2_to_g(ay),
            acceleration_z=ms2_to_g(az),
            rotation_rate_x=gx,
            rotation_rate_y=gy,
            rotation_rate_z=gz,
        )


class TermuxHeadingSource:
    """Azimuth from the orientation sensor. True heading needs a known declination."""

    name = "heading_termux"

    def __init__(self, stream: TermuxJsonStream, declination_deg: Optional[float] = None) -> None:
        self._stream = stream
        self.declination_deg = declination_deg

    def start(self, emit: Emit[HeadingReading], fail: Fail) -> None:
        def on_object(obj: dict[str, Any]) -> None:
            reading = self.convert(obj)
            if reading is not None:
                emit(reading)

        self._stream.start(on_object, fail)

    def stop(self) -> None:
        self._stream.stop()

    def convert(self, obj: dict[str, Any]) -> Optional[HeadingReading]:
        values = _values(obj, "orientation", "azimuth")
        if values is None:
            return None
        magnetic = normalize_heading(values[0])
        true = true_heading(magnetic, self.declination_deg)
        return HeadingReading(
            degrees=true if true is not None else magnetic,
            magnetic_degrees=magnetic,
            true_degrees=true,
        )


class TermuxLocationSource:
    """Continuous best-accuracy GPS fixes from termux-location."""

    name = "location_termux"

    def __init__(self, stream: TermuxJsonStream) -> None:
        self._stream = stream

    def start(self, emit: Emit[LocationReading], fail: Fail) -> None:
        def on_object(obj: dict[str, Any]) -> None:
            try:
                reading = self.convert(obj)
            except DriverError as e:
                fail(e)
                return
            emit(reading)

        self._stream.start(on_object, fail)

    def stop(self) -> None:
        self._stream.stop()

    @staticmethod
    def convert(obj: dict[str, Any]) -> LocationReading:
        try:
            lat = float(obj["latitude"])
            lon = float(obj["longitude"])
        except (KeyError, TypeError, ValueError) as e:
            raise DriverError(f"Malformed location fix: {obj!r}") from e
        accuracy = obj.get("accuracy")
        return LocationReading(
            latitude=lat,
            longitude=lon,
            accuracy_m=float(accuracy) if accuracy is not None else None,
        )


def motion_stream(cmd: str, sensors: str, delay_ms: int) -> TermuxJsonStream:
    return TermuxJsonStream(TermuxCommand(sensor_argv(cmd, sensors, delay_ms), name="motion"))


def heading_stream(cmd: str, sensors: str, delay_ms: int) -> TermuxJsonStream:
    return TermuxJsonStream(TermuxCommand(sensor_argv(cmd, sensors, delay_ms), name="heading"))


def location_stream(cmd: str) -> TermuxJsonStream:
    return TermuxJsonStream(TermuxCommand(location_argv(cmd), name="location"))
