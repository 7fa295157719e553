from __future__ import annotations

import json
import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence

from ..core.errors import DriverError, HardwareUnavailable
from ..domain.models import AuthorizationState

logger = logging.getLogger(__name__)

ERROR_KEYS = ("API_ERROR", "error")


def iter_json_objects(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """
    termux-api tools pretty-print one JSON object per update, spread over
    several lines. Accumulate lines until braces balance, then decode.
    Malformed objects are skipped.
    """
    buf = ""
    depth = 0
    for line in lines:
        if not buf and not line.strip():
            continue
        buf += line
        depth += line.count("{") - line.count("}")
        if depth <= 0 and buf.strip():
            try:
                obj = json.loads(buf)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed termux output: %r", buf[:200])
            else:
                if isinstance(obj, dict):
                    yield obj
            buf = ""
            depth = 0


def error_message(obj: dict[str, Any]) -> Optional[str]:
    for key in ERROR_KEYS:
        if key in obj:
            return str(obj[key])
    return None


@dataclass
class TermuxCommand:
    argv: Sequence[str]
    name: str = "termux"


class TermuxJsonStream:
    """
    Long-lived termux-api process (termux-sensor, termux-location -r updates).
    Responsible for: spawning, parsing the JSON stream on a reader thread,
    and tearing the process down.
    """

    REAP_TIMEOUT_S = 2.0

    def __init__(self, cmd: TermuxCommand, popen: Callable[..., subprocess.Popen] = subprocess.Popen) -> None:
        self.cmd = cmd
        self._popen = popen
        self._process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def running(self) -> bool:
        return self._process is not None

    def start(
        self,
        on_object: Callable[[dict[str, Any]], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        if self._process is not None:
            return
        self._stop.clear()
        try:
            self._process = self._popen(
                list(self.cmd.argv),
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise HardwareUnavailable(f"{self.cmd.name}: cannot launch {self.cmd.argv[0]}: {e}") from e

        self._reader = threading.Thread(
            target=self._read_stream,
            args=(self._process, on_object, on_error),
            name=f"{self.cmd.name}_reader",
            daemon=True,
        )
        self._reader.start()
        logger.info("%s stream started: %s", self.cmd.name, " ".join(self.cmd.argv))

    def _read_stream(
        self,
        process: subprocess.Popen,
        on_object: Callable[[dict[str, Any]], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        try:
            for obj in iter_json_objects(process.stdout):
                if self._stop.is_set():
                    return
                msg = error_message(obj)
                if msg is not None:
                    on_error(DriverError(f"{self.cmd.name}: {msg}"))
                    return
                on_object(obj)
        except DriverError as e:
            if not self._stop.is_set():
                on_error(e)
            return
        except (OSError, ValueError) as e:
            if not self._stop.is_set():
                on_error(DriverError(f"{self.cmd.name}: stream read failed: {e}"))
            return
        except Exception as e:
            logger.exception("%s: reader failed", self.cmd.name)
            if not self._stop.is_set():
                on_error(DriverError(f"{self.cmd.name}: reader failed: {e}"))
            return

        if not self._stop.is_set():
            code = process.poll()
            on_error(DriverError(f"{self.cmd.name}: process exited (code={code})"))

    def stop(self) -> Optional[threading.Thread]:
        """
        Signal the process and return at once. Waiting for exit, killing a
        process that ignores SIGTERM and joining the reader happen on a
        daemon thread, which is returned.
        """
        self._stop.set()
        process, self._process = self._process, None
        reader, self._reader = self._reader, None
        if process is not None:
            try:
                process.terminate()
            except OSError as e:
                logger.warning("%s: terminate failed: %s", self.cmd.name, e)
        if process is None and reader is None:
            return None

        reaper = threading.Thread(
            target=self._reap,
            args=(process, reader),
            name=f"{self.cmd.name}_reaper",
            daemon=True,
        )
        reaper.start()
        logger.info("%s stream stopped", self.cmd.name)
        return reaper

    def _reap(self, process: Optional[subprocess.Popen], reader: Optional[threading.Thread]) -> None:
        if process is not None:
            try:
                process.wait(timeout=self.REAP_TIMEOUT_S)
            except subprocess.TimeoutExpired:
                logger.warning("%s: process ignored SIGTERM, killing", self.cmd.name)
                try:
                    process.kill()
                    process.wait()
                except OSError as e:
                    logger.warning("%s: kill failed: %s", self.cmd.name, e)
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=self.REAP_TIMEOUT_S)


def run_once(argv: Sequence[str], timeout: float) -> subprocess.CompletedProcess:
    return subprocess.run(list(argv), capture_output=True, text=True, timeout=timeout)


def classify_probe(result: subprocess.CompletedProcess) -> AuthorizationState:
    """Map a one-shot termux invocation to an authorization state."""
    output = f"{result.stdout or ''}\n{result.stderr or ''}".lower()
    if "permission" in output or "denied" in output:
        return AuthorizationState.DENIED
    for obj in iter_json_objects((result.stdout or "").splitlines(keepends=True)):
        if error_message(obj) is not None:
            return AuthorizationState.RESTRICTED
    if result.returncode != 0:
        return AuthorizationState.RESTRICTED
    return AuthorizationState.GRANTED


class TermuxAuthorizer:
    """
    termux-api asks for the Android runtime permission the first time a tool
    runs. A one-shot probe on a worker thread triggers that prompt and
    reports what came back.
    """

    def __init__(
        self,
        probe_argv: Sequence[str],
        timeout: float = 15.0,
        runner: Callable[[Sequence[str], float], subprocess.CompletedProcess] = run_once,
    ) -> None:
        self.probe_argv = list(probe_argv)
        self.timeout = timeout
        self._runner = runner

    def request(self, callback: Callable[[AuthorizationState], None]) -> None:
        threading.Thread(
            target=self._probe, args=(callback,), name="termux_authorizer", daemon=True
        ).start()

    def _probe(self, callback: Callable[[AuthorizationState], None]) -> None:
        try:
            result = self._runner(self.probe_argv, self.timeout)
        except FileNotFoundError:
            logger.warning("Authorization probe: %s not installed", self.probe_argv[0])
            callback(AuthorizationState.RESTRICTED)
            return
        except subprocess.TimeoutExpired:
            # Permission prompt still open; stay undetermined
            logger.warning("Authorization probe timed out: %s", " ".join(self.probe_argv))
            callback(AuthorizationState.NOT_DETERMINED)
            return
        state = classify_probe(result)
        logger.info("Authorization probe %s -> %s", self.probe_argv[0], state.value)
        callback(state)
