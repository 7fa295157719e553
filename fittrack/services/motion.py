from __future__ import annotations

import logging
from typing import Callable, Optional

from ..core.config import Settings, settings as default_settings
from ..core.dispatch import UIDispatcher
from ..domain.interfaces import Authorizer, SensorDriver
from ..domain.models import MotionReading, SourceMode
from ..sensors.simulated import SimulatedMotionSource
from ..sensors.termux_sources import TermuxMotionSource, motion_stream
from .facade import SensorFacade

logger = logging.getLogger(__name__)


class MotionFacade(SensorFacade[MotionReading]):
    """
    Accelerometer and gyroscope at 60 Hz.

    The use_simulated_data preference is consulted on every start() from
    IDLE/STOPPED, never while a run is in progress.
    """

    kind = "motion"

    def __init__(
        self,
        live_capable: bool,
        authorizer: Optional[Authorizer] = None,
        *,
        use_simulated_data: Optional[bool] = None,
        settings: Settings = default_settings,
        source_factory: Optional[Callable[[SourceMode], SensorDriver[MotionReading]]] = None,
        dispatcher: Optional[UIDispatcher] = None,
    ) -> None:
        self._settings = settings
        self.live_capable = live_capable
        self.use_simulated_data = (
            settings.use_simulated_data if use_simulated_data is None else use_simulated_data
        )
        super().__init__(
            self._pick_mode(),
            source_factory or self._build_source,
            authorizer,
            dispatcher=dispatcher,
            history_size=settings.history_size,
        )

    def _pick_mode(self) -> SourceMode:
        if not self.live_capable or self.use_simulated_data:
            return SourceMode.SIMULATED
        return SourceMode.LIVE

    def _resolve_mode(self) -> SourceMode:
        mode = self._pick_mode()
        if mode is not self.mode:
            logger.info("motion: source mode %s -> %s", self.mode.value, mode.value)
        return mode

    def _build_source(self, mode: SourceMode) -> SensorDriver[MotionReading]:
        s = self._settings
        if mode is SourceMode.SIMULATED:
            return SimulatedMotionSource(interval_s=s.motion_interval_s)
        return TermuxMotionSource(
            motion_stream(s.termux_sensor_cmd, s.termux_motion_sensors, s.termux_sensor_delay_ms)
        )
