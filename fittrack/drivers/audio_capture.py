from __future__ import annotations

import logging
import threading
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import numpy as np

from ..core.errors import HardwareUnavailable, RecordingStartFailure
from ..domain.conversions import MIN_POWER_DB, rms_to_db
from ..domain.models import AuthorizationState

logger = logging.getLogger(__name__)


def _sounddevice() -> Any:
    # PortAudio is loaded at import time; a device without it has no microphone
    try:
        import sounddevice
    except (ImportError, OSError) as e:
        raise HardwareUnavailable(f"sounddevice unavailable: {e}") from e
    return sounddevice


@dataclass
class AudioCaptureConfig:
    sample_rate: int = 44100
    channels: int = 1
    device: Optional[int] = None
    blocksize: int = 0  # let PortAudio choose


class AudioCapture:
    """
    Microphone input stream with a metering tap and an optional WAV sink.
    Responsible for: opening/closing the PortAudio stream, averaging block
    power between meter polls, and writing 16-bit PCM while recording.
    """

    def __init__(self, cfg: AudioCaptureConfig = AudioCaptureConfig()) -> None:
        self.cfg = cfg
        self._stream: Any = None
        self._lock = threading.Lock()
        self._sum_squares = 0.0
        self._frames = 0
        self._last_db = MIN_POWER_DB
        self._sink: Optional[wave.Wave_write] = None
        self.recording_path: Optional[Path] = None

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def is_recording(self) -> bool:
        return self._sink is not None

    def open(self) -> None:
        if self._stream is not None:
            return
        sd = _sounddevice()
        try:
            stream = sd.InputStream(
                samplerate=self.cfg.sample_rate,
                channels=self.cfg.channels,
                device=self.cfg.device,
                blocksize=self.cfg.blocksize,
                dtype="float32",
                callback=self._on_block,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise RecordingStartFailure(f"Unable to open audio input: {e}") from e
        self._stream = stream
        logger.info("Audio capture opened (rate=%s channels=%s)", self.cfg.sample_rate, self.cfg.channels)

    def close(self) -> None:
        self.stop_recording()
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("Audio capture closed")

    def _on_block(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("Audio input status: %s", status)
        samples = np.asarray(indata, dtype=np.float32)
        with self._lock:
            self._sum_squares += float(np.sum(np.square(samples)))
            self._frames += samples.size
            if self._sink is not None:
                pcm = (np.clip(samples, -1.0, 1.0) * 32767.0).astype("<i2")
                self._sink.writeframes(pcm.tobytes())

    def feed(self, samples: np.ndarray) -> None:
        """Push a block as if it came from the device (used by tests)."""
        self._on_block(samples, len(samples), None, None)

    def average_power(self) -> float:
        """
        Average power (dBFS) of everything captured since the previous call.
        Keeps the previous value when no new block has arrived.
        """
        with self._lock:
            if self._frames:
                rms = float(np.sqrt(self._sum_squares / self._frames))
                self._last_db = rms_to_db(rms)
                self._sum_squares = 0.0
                self._frames = 0
            return self._last_db

    def start_recording(self, path: Path) -> None:
        if self._sink is not None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            sink = wave.open(str(path), "wb")
            sink.setnchannels(self.cfg.channels)
            sink.setsampwidth(2)
            sink.setframerate(self.cfg.sample_rate)
        except (OSError, wave.Error) as e:
            raise RecordingStartFailure(f"Unable to open recording file {path}: {e}") from e
        with self._lock:
            self._sink = sink
        self.recording_path = path
        logger.info("Recording to %s", path)

    def stop_recording(self) -> None:
        with self._lock:
            sink, self._sink = self._sink, None
        if sink is None:
            return
        sink.close()
        logger.info("Recording closed: %s", self.recording_path)


def has_audio_input(device: Optional[int] = None) -> bool:
    try:
        sd = _sounddevice()
        sd.check_input_settings(device=device)
    except HardwareUnavailable:
        return False
    except Exception as e:
        logger.info("No usable audio input: %s", e)
        return False
    return True


class AudioInputAuthorizer:
    """Desktop PortAudio has no permission prompt: an openable input counts as granted."""

    def __init__(self, device: Optional[int] = None, check: Callable[[Optional[int]], bool] = has_audio_input) -> None:
        self.device = device
        self._check = check

    def request(self, callback: Callable[[AuthorizationState], None]) -> None:
        threading.Thread(target=self._probe, args=(callback,), name="audio_authorizer", daemon=True).start()

    def _probe(self, callback: Callable[[AuthorizationState], None]) -> None:
        ok = self._check(self.device)
        callback(AuthorizationState.GRANTED if ok else AuthorizationState.RESTRICTED)
