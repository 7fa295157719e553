from __future__ import annotations

from ..domain.conversions import db_to_linear
from ..domain.models import SoundReading
from ..drivers.audio_capture import AudioCapture
from .base import TimerSource


class CaptureMeterSource(TimerSource[SoundReading]):
    """Polls the capture stream's average power every interval (updateMeters)."""

    name = "sound_meter"

    def __init__(self, capture: AudioCapture, interval_s: float = 0.1) -> None:
        super().__init__(interval_s)
        self.capture = capture

    def _on_start(self) -> None:
        self.capture.open()

    def _on_stop(self) -> None:
        self.capture.close()

    def generate(self) -> SoundReading:
        db = self.capture.average_power()
        return SoundReading(level=db_to_linear(db), average_power_db=db)
