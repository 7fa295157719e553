from __future__ import annotations

import math
import random
import time
from typing import Optional

from ..domain.conversions import normalize_heading
from ..domain.models import HeadingReading, LocationReading, MotionReading, SoundReading
from .base import TimerSource

ACCEL_RANGE_G = 2.0
ROTATION_RANGE = 5.0


class SimulatedMotionSource(TimerSource[MotionReading]):
    name = "motion_sim"

    def __init__(self, interval_s: float = 1.0 / 60.0, rng: Optional[random.Random] = None) -> None:
        super().__init__(interval_s)
        self._rng = rng or random.Random()

    def generate(self) -> MotionReading:
        u = self._rng.uniform
        return MotionReading(
            acceleration_x=u(-ACCEL_RANGE_G, ACCEL_RANGE_G),
            acceleration_y=u(-ACCEL_RANGE_G, ACCEL_RANGE_G),
            acceleration_z=u(-ACCEL_RANGE_G, ACCEL_RANGE_G),
            rotation_rate_x=u(-ROTATION_RANGE, ROTATION_RANGE),
            rotation_rate_y=u(-ROTATION_RANGE, ROTATION_RANGE),
            rotation_rate_z=u(-ROTATION_RANGE, ROTATION_RANGE),
        )


class SimulatedHeadingSource(TimerSource[HeadingReading]):
    """Compass that turns steadily clockwise, step degrees per tick."""

    name = "heading_sim"

    def __init__(self, interval_s: float = 1.0 / 60.0, step_deg: float = 1.0, start_deg: float = 0.0) -> None:
        super().__init__(interval_s)
        self.step_deg = step_deg
        self._heading = normalize_heading(start_deg)

    def generate(self) -> HeadingReading:
        self._heading = normalize_heading(self._heading + self.step_deg)
        return HeadingReading(degrees=self._heading, magnetic_degrees=self._heading, true_degrees=self._heading)


class SimulatedSoundSource(TimerSource[SoundReading]):
    """Smooth level (sin(2t) + 1) / 2 over wall-clock time."""

    name = "sound_sim"

    def __init__(self, interval_s: float = 0.1, clock=time.time) -> None:
        super().__init__(interval_s)
        self._clock = clock

    def generate(self) -> SoundReading:
        level = (math.sin(self._clock() * 2.0) + 1.0) / 2.0
        level = min(1.0, max(0.0, level))
        db = 20.0 * math.log10(level) if level > 0 else None
        return SoundReading(level=level, average_power_db=db)


class SimulatedLocationSource(TimerSource[LocationReading]):
    """Random walk around a starting point, roughly walking pace."""

    name = "location_sim"

    def __init__(
        self,
        interval_s: float = 1.0,
        start: tuple[float, float] = (37.334_900, -122.009_020),
        step_deg: float = 0.00002,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(interval_s)
        self._lat, self._lon = start
        self.step_deg = step_deg
        self._rng = rng or random.Random()

    def generate(self) -> LocationReading:
        self._lat = max(-90.0, min(90.0, self._lat + self._rng.uniform(-self.step_deg, self.step_deg)))
        self._lon = (self._lon + self._rng.uniform(-self.step_deg, self.step_deg) + 180.0) % 360.0 - 180.0
        return LocationReading(latitude=self._lat, longitude=self._lon, accuracy_m=5.0)
