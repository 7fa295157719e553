from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

from .core.config import Settings, settings
from .core.dispatch import UIDispatcher
from .core.log import configure_logging

from .domain.models import SourceMode
from .drivers.audio_capture import AudioInputAuthorizer
from .drivers.termux import TermuxAuthorizer
from .services.heading import HeadingFacade
from .services.location import LocationFacade
from .services.motion import MotionFacade
from .services.platform import PlatformCapabilities, PlatformProbe, select_mode
from .services.sound import SoundFacade


logger = logging.getLogger(__name__)


class ScenePhase(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


@dataclass
class Facades:
    motion: MotionFacade
    location: LocationFacade
    heading: HeadingFacade
    sound: SoundFacade

    def all(self) -> list:
        return [self.motion, self.location, self.heading, self.sound]


def build_facades(
    cfg: Settings = settings,
    capabilities: Optional[PlatformCapabilities] = None,
    dispatcher: Optional[UIDispatcher] = None,
) -> Facades:
    """
    Composition root: probe once, build each facade once, hand the references
    to whoever renders them. All facades share one UI dispatcher.
    """
    caps = capabilities or PlatformProbe(cfg).capabilities()
    dispatcher = dispatcher or UIDispatcher()

    sensor_probe = [cfg.termux_sensor_cmd, "-l"]
    location_probe = [cfg.termux_location_cmd, "-p", "gps", "-r", "last"]

    motion = MotionFacade(
        live_capable=select_mode(cfg.sensor_mode, caps.motion) is SourceMode.LIVE,
        authorizer=TermuxAuthorizer(sensor_probe, timeout=cfg.termux_probe_timeout_s),
        settings=cfg,
        dispatcher=dispatcher,
    )
    location = LocationFacade(
        select_mode(cfg.sensor_mode, caps.location),
        TermuxAuthorizer(location_probe, timeout=cfg.termux_probe_timeout_s),
        available=caps.location,
        settings=cfg,
        dispatcher=dispatcher,
    )
    heading = HeadingFacade(
        select_mode(cfg.sensor_mode, caps.heading),
        TermuxAuthorizer(sensor_probe, timeout=cfg.termux_probe_timeout_s),
        available=caps.heading,
        settings=cfg,
        dispatcher=dispatcher,
    )
    sound = SoundFacade(
        select_mode(cfg.sensor_mode, caps.sound),
        AudioInputAuthorizer(),
        available=caps.sound,
        settings=cfg,
        dispatcher=dispatcher,
    )

    logger.info(
        "Facades built: motion=%s location=%s heading=%s sound=%s",
        motion.mode.value, location.mode.value, heading.mode.value, sound.mode.value,
    )
    return Facades(motion=motion, location=location, heading=heading, sound=sound)


def on_scene_phase(facades: Facades, phase: ScenePhase) -> None:
    """App moved to foreground/background. Recording follows the app on a real device."""
    if facades.sound.mode is not SourceMode.LIVE:
        return
    if phase is ScenePhase.ACTIVE:
        facades.sound.start_recording()
    elif phase is ScenePhase.BACKGROUND:
        facades.sound.stop_recording()


@asynccontextmanager
async def lifespan(facades: Facades) -> AsyncIterator[Facades]:
    logger.info("Starting %s", settings.app_name)
    for facade in facades.all():
        facade.start()

    try:
        yield facades
    finally:
        for facade in facades.all():
            facade.stop()

        logger.info("Shutdown complete")


async def run(report_every_s: float = 1.0) -> None:
    facades = build_facades()
    async with lifespan(facades):
        while True:
            await asyncio.sleep(report_every_s)
            for facade in facades.all():
                logger.info(
                    "%s state=%s reading=%s",
                    facade.kind, facade.state.value, facade.latest_reading(),
                )


def main() -> None:
    configure_logging()
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
