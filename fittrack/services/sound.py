from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from ..core.config import Settings, settings as default_settings
from ..core.dispatch import UIDispatcher
from ..core.errors import RecordingStartFailure
from ..core.timeutil import unix_timestamp
from ..domain.interfaces import Authorizer, SensorDriver
from ..domain.models import SoundReading, SourceMode
from ..drivers.audio_capture import AudioCapture, AudioCaptureConfig
from ..sensors.simulated import SimulatedSoundSource
from ..sensors.sound_capture import CaptureMeterSource
from .facade import SensorFacade

logger = logging.getLogger(__name__)


def recording_filename(ts: float) -> str:
    return f"recording_{ts:.6f}.wav"


class SoundFacade(SensorFacade[SoundReading]):
    """
    Ambient sound level, metered every 0.1 s, plus a recording sub-lifecycle.

    Starting the facade starts metering and recording together; stopping it
    stops both. start_recording()/stop_recording() toggle only the file sink
    and require the facade to be ACTIVE (same authorization gate as metering).
    In simulated mode recording is a flag only; nothing touches the disk.
    """

    kind = "sound"

    def __init__(
        self,
        mode: SourceMode,
        authorizer: Optional[Authorizer] = None,
        *,
        available: bool = True,
        settings: Settings = default_settings,
        capture_factory: Optional[Callable[[], AudioCapture]] = None,
        source_factory: Optional[Callable[[SourceMode], SensorDriver[SoundReading]]] = None,
        dispatcher: Optional[UIDispatcher] = None,
        clock: Callable[[], float] = unix_timestamp,
    ) -> None:
        self._settings = settings
        self._capture_factory = capture_factory or self._default_capture
        self._capture: Optional[AudioCapture] = None
        self._clock = clock
        super().__init__(
            mode,
            source_factory or self._build_source,
            authorizer,
            dispatcher=dispatcher,
            history_size=settings.history_size,
            available=available or mode is SourceMode.SIMULATED,
        )
        self.is_recording = False
        self.recording_path: Optional[Path] = None

    @property
    def is_sound_available(self) -> bool:
        return self.is_available

    @property
    def sound_level(self) -> float:
        reading = self.latest_reading()
        return reading.level if reading else 0.0

    # --- recording ---

    def start_recording(self) -> None:
        if self.is_recording:
            return
        if not self.is_active:
            logger.info("sound: start_recording ignored (state=%s)", self.state.value)
            return

        if self.mode is SourceMode.LIVE:
            if self._capture is None:
                logger.warning("sound: no capture stream to record from")
                return
            path = Path(self._settings.recordings_dir) / recording_filename(self._clock())
            try:
                self._capture.start_recording(path)
            except RecordingStartFailure as e:
                self.is_available = False
                self._absorb(e)
                self._notify_state()
                return
            self.is_available = True
            self.recording_path = path

        self.is_recording = True
        self._notify_state()

    def stop_recording(self) -> None:
        if not self.is_recording:
            return
        if self._capture is not None:
            self._capture.stop_recording()
        self.is_recording = False
        self._notify_state()

    # --- facade hooks ---

    def _did_activate(self) -> None:
        # metering is running, so the input works again after an earlier failure
        self.is_available = True
        self.start_recording()

    def _will_release(self) -> None:
        self.stop_recording()
        self._capture = None

    def _absorb(self, exc: BaseException) -> None:
        if isinstance(exc, RecordingStartFailure):
            self.is_available = False
        super()._absorb(exc)

    def _default_capture(self) -> AudioCapture:
        s = self._settings
        return AudioCapture(AudioCaptureConfig(sample_rate=s.audio_sample_rate, channels=s.audio_channels))

    def _build_source(self, mode: SourceMode) -> SensorDriver[SoundReading]:
        if mode is SourceMode.SIMULATED:
            return SimulatedSoundSource(interval_s=self._settings.sound_interval_s)
        self._capture = self._capture_factory()
        return CaptureMeterSource(self._capture, interval_s=self._settings.sound_interval_s)
