from __future__ import annotations

from typing import Callable, Optional

from ..core.config import Settings, settings as default_settings
from ..core.dispatch import UIDispatcher
from ..domain.conversions import normalize_heading
from ..domain.interfaces import Authorizer, SensorDriver
from ..domain.models import AuthorizationState, HeadingReading, SourceMode
from ..sensors.simulated import SimulatedHeadingSource
from ..sensors.termux_sources import TermuxHeadingSource, heading_stream
from .facade import SensorFacade


class HeadingFacade(SensorFacade[HeadingReading]):
    kind = "heading"

    def __init__(
        self,
        mode: SourceMode,
        authorizer: Optional[Authorizer] = None,
        *,
        available: bool = True,
        settings: Settings = default_settings,
        source_factory: Optional[Callable[[SourceMode], SensorDriver[HeadingReading]]] = None,
        dispatcher: Optional[UIDispatcher] = None,
    ) -> None:
        self._settings = settings
        super().__init__(
            mode,
            source_factory or self._build_source,
            authorizer,
            dispatcher=dispatcher,
            history_size=settings.history_size,
            available=available or mode is SourceMode.SIMULATED,
        )

    @property
    def is_heading_available(self) -> bool:
        if not self.is_available:
            return False
        if self.mode is SourceMode.SIMULATED:
            return True
        return self.authorization_state not in (AuthorizationState.DENIED, AuthorizationState.RESTRICTED)

    def current_degrees(self) -> float:
        """Heading to draw: true heading when known, 0.0 before the first reading."""
        reading = self.latest_reading()
        return reading.degrees if reading else 0.0

    def _accept(self, reading: HeadingReading) -> HeadingReading:
        degrees = normalize_heading(reading.degrees)
        if degrees == reading.degrees:
            return reading
        return HeadingReading(
            degrees=degrees,
            magnetic_degrees=reading.magnetic_degrees,
            true_degrees=reading.true_degrees,
            ts_utc=reading.ts_utc,
        )

    def _build_source(self, mode: SourceMode) -> SensorDriver[HeadingReading]:
        s = self._settings
        if mode is SourceMode.SIMULATED:
            return SimulatedHeadingSource(interval_s=s.heading_interval_s)
        return TermuxHeadingSource(
            heading_stream(s.termux_sensor_cmd, s.termux_heading_sensors, s.termux_sensor_delay_ms),
            declination_deg=s.magnetic_declination_deg,
        )
