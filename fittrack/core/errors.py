"""Sensor error taxonomy.

These are raised inside drivers and sources. Facades absorb them and turn them
into observable flags, so UI code only ever inspects state.
"""
from __future__ import annotations


class SensorError(Exception):
    """Base class for every sensor-side failure."""


class AuthorizationDenied(SensorError):
    """User or platform refused access to the sensor."""


class HardwareUnavailable(SensorError):
    """The sensor (or the tool that reads it) is not present on this device."""


class DriverError(SensorError):
    """A running driver reported a failure; the last reading stays stale."""


class RecordingStartFailure(SensorError):
    """The audio capture stream or its file sink could not be opened."""
