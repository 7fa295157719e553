from __future__ import annotations

from collections import deque
from dataclasses import replace
from typing import Callable, Deque, List, Optional

from ..core.config import Settings, settings as default_settings
from ..core.dispatch import UIDispatcher
from ..domain.interfaces import Authorizer, SensorDriver
from ..domain.models import Coordinate, LocationReading, MapRegion, SourceMode
from ..sensors.simulated import SimulatedLocationSource
from ..sensors.termux_sources import TermuxLocationSource, location_stream
from .facade import SensorFacade


class LocationFacade(SensorFacade[LocationReading]):
    """
    GPS position plus the trail walked so far.

    Each accepted reading appends its coordinate to the path; the path is a
    ring buffer of location_path_max_points, oldest points evicted first.
    Readings only arrive while ACTIVE, so the path never grows otherwise.
    """

    kind = "location"

    def __init__(
        self,
        mode: SourceMode,
        authorizer: Optional[Authorizer] = None,
        *,
        available: bool = True,
        settings: Settings = default_settings,
        source_factory: Optional[Callable[[SourceMode], SensorDriver[LocationReading]]] = None,
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
        self._path: Deque[Coordinate] = deque(maxlen=settings.location_path_max_points)
        self.user_location: Optional[Coordinate] = None
        self.region = MapRegion(
            center=(settings.default_latitude, settings.default_longitude),
            span_lat=settings.region_span_deg,
            span_lon=settings.region_span_deg,
        )

    @property
    def path(self) -> List[Coordinate]:
        return list(self._path)

    def clear_path(self) -> None:
        self._path.clear()
        self._notify_state()

    def _accept(self, reading: LocationReading) -> LocationReading:
        coord = reading.coordinate
        self._path.append(coord)
        self.user_location = coord
        self.region = MapRegion(center=coord, span_lat=self.region.span_lat, span_lon=self.region.span_lon)
        return replace(reading, accumulated_path=tuple(self._path))

    def _build_source(self, mode: SourceMode) -> SensorDriver[LocationReading]:
        s = self._settings
        if mode is SourceMode.SIMULATED:
            return SimulatedLocationSource(
                interval_s=s.location_interval_s,
                start=(s.default_latitude, s.default_longitude),
            )
        return TermuxLocationSource(location_stream(s.termux_location_cmd))
