from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass

from ..core.config import Settings
from ..domain.models import SourceMode
from ..drivers.audio_capture import has_audio_input

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformCapabilities:
    motion: bool
    heading: bool
    location: bool
    sound: bool


class PlatformProbe:
    """
    Decides once, at construction time of the app, what hardware paths exist:
    termux-api tools for motion/heading/location, a PortAudio input for sound.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def capabilities(self) -> PlatformCapabilities:
        sensor_tool = shutil.which(self._settings.termux_sensor_cmd) is not None
        location_tool = shutil.which(self._settings.termux_location_cmd) is not None
        caps = PlatformCapabilities(
            motion=sensor_tool,
            heading=sensor_tool,
            location=location_tool,
            sound=has_audio_input(),
        )
        logger.info("Platform capabilities: %s", caps)
        return caps


def select_mode(sensor_mode: str, capable: bool) -> SourceMode:
    mode = sensor_mode.lower()
    if mode in ("sim", "simulated"):
        return SourceMode.SIMULATED
    if mode == "live":
        return SourceMode.LIVE
    if mode != "auto":
        raise ValueError(f"Unknown sensor_mode: {sensor_mode!r} (expected auto|live|sim)")
    return SourceMode.LIVE if capable else SourceMode.SIMULATED
