from __future__ import annotations
import math
from typing import Optional

MIN_POWER_DB = -160.0
STANDARD_GRAVITY = 9.80665


def normalize_heading(degrees: float) -> float:
    """Wrap any angle into [0, 360)."""
    wrapped = math.fmod(degrees, 360.0)
    if wrapped < 0.0:
        wrapped += 360.0
    # fmod of a tiny negative can round up to exactly 360.0
    if wrapped >= 360.0:
        wrapped = 0.0
    return wrapped


def true_heading(magnetic: float, declination: Optional[float]) -> Optional[float]:
    if declination is None:
        return None
    return normalize_heading(magnetic + declination)


def db_to_linear(db: float) -> float:
    """Average power in dBFS -> linear level in [0, 1]."""
    if math.isnan(db):
        return 0.0
    return min(1.0, max(0.0, 10.0 ** (db / 20.0)))


def rms_to_db(rms: float) -> float:
    if rms <= 0.0:
        return MIN_POWER_DB
    return max(MIN_POWER_DB, 20.0 * math.log10(rms))


def ms2_to_g(value: float) -> float:
    return value / STANDARD_GRAVITY
