from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union

from ..core.timeutil import now_utc


Coordinate = Tuple[float, float]  # (latitude, longitude)


class SourceMode(Enum):
    LIVE = "live"
    SIMULATED = "simulated"


class AuthorizationState(Enum):
    NOT_DETERMINED = "not_determined"
    GRANTED = "granted"
    DENIED = "denied"
    RESTRICTED = "restricted"


class FacadeLifecycleState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPED = "stopped"


class Unavailable(Enum):
    UNAVAILABLE = "unavailable"

    def __bool__(self) -> bool:
        return False


UNAVAILABLE = Unavailable.UNAVAILABLE


@dataclass(frozen=True)
class MotionReading:
    acceleration_x: float
    acceleration_y: float
    acceleration_z: float
    rotation_rate_x: float
    rotation_rate_y: float
    rotation_rate_z: float
    ts_utc: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class LocationReading:
    latitude: float
    longitude: float
    accumulated_path: Tuple[Coordinate, ...] = ()
    accuracy_m: Optional[float] = None
    ts_utc: datetime = field(default_factory=now_utc)

    @property
    def coordinate(self) -> Coordinate:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class HeadingReading:
    degrees: float  # true heading when known, magnetic otherwise; [0, 360)
    magnetic_degrees: Optional[float] = None
    true_degrees: Optional[float] = None
    ts_utc: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class SoundReading:
    level: float  # linear, [0.0, 1.0]
    average_power_db: Optional[float] = None
    ts_utc: datetime = field(default_factory=now_utc)


Reading = Union[MotionReading, LocationReading, HeadingReading, SoundReading]


@dataclass(frozen=True)
class MapRegion:
    center: Coordinate
    span_lat: float = 0.05
    span_lon: float = 0.05
