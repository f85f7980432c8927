"""Supervised solver subprocess with live output streaming."""

from __future__ import annotations

import codecs
import contextlib
import logging
import re
import subprocess
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

from solver_supervisor.errors import ProcessStateError, SpawnError, WaitError
from solver_supervisor.models import ProcessState, RunOutcomeKind
from solver_supervisor.signals import Signal

logger = logging.getLogger(__name__)

STOP_COMMAND = "STOP"
READER_JOIN_SECONDS = 5.0
READ_CHUNK_BYTES = 64 * 1024

# A complete output segment ends with "\r\n", "\n" or a bare "\r" (progress redraw).
_SEGMENT = re.compile(r"[^\r\n]*(?:\r\n|\n|\r)")


@runtime_checkable
class SupervisedProcess(Protocol):
    """Process handle driven by ``SolverTask``."""

    standard_output: Signal[str]
    standard_error: Signal[str]

    @property
    def killed(self) -> bool:
        """True when the process was terminated by ``kill``."""

    def start(self, executable: str, arguments: Sequence[str]) -> None:
        """Spawn the process; raises ``SpawnError``."""

    def stop(self) -> bool:
        """Ask the process to finish; returns False when nothing was sent."""

    def kill(self) -> bool:
        """Terminate the process; returns False when it was not running."""

    def wait_for_completion(self, timeout: float | None = None) -> int:
        """Wait for exit and return the exit code; raises ``WaitError``."""


class SolverProcess:
    """Owns one solver subprocess: start, stream, stop, kill, wait.

    Standard output and standard error are read by two independent threads.
    Output is emitted as soon as a segment ends with a newline or a
    carriage return, so progress redraws arrive without waiting for a full
    line. Ordering holds within a channel but not across channels.
    """

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        self.standard_output: Signal[str] = Signal("standard_output")
        self.standard_error: Signal[str] = Signal("standard_error")
        self._lock = threading.Lock()
        self._state = ProcessState.NOT_STARTED
        self._process: subprocess.Popen[bytes] | None = None
        self._readers: list[threading.Thread] = []
        self._exit_code: int | None = None

    @property
    def state(self) -> ProcessState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return (
                self._state is ProcessState.RUNNING
                and self._process is not None
                and self._process.poll() is None
            )

    @property
    def exit_code(self) -> int | None:
        with self._lock:
            return self._exit_code

    @property
    def pid(self) -> int | None:
        with self._lock:
            return self._process.pid if self._process is not None else None

    def start(
        self,
        executable: str,
        arguments: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        with self._lock:
            if self._state is not ProcessState.NOT_STARTED:
                raise ProcessStateError(f"Solver process already {self._state.value}.")
            try:
                process = subprocess.Popen(  # noqa: S603
                    [executable, *arguments],
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    bufsize=0,
                    cwd=cwd,
                    env=dict(env) if env is not None else None,
                )
            except FileNotFoundError as error:
                raise SpawnError(
                    f"Solver executable not found: {executable}",
                    executable=executable,
                ) from error
            except PermissionError as error:
                raise SpawnError(
                    f"Solver executable is not executable: {executable}",
                    executable=executable,
                ) from error
            except OSError as error:
                raise SpawnError(
                    f"Solver failed to start: {error}",
                    executable=executable,
                ) from error

            self._process = process
            self._state = ProcessState.RUNNING
            self._readers = [
                self._start_reader(process.stdout, self.standard_output, process.pid),
                self._start_reader(process.stderr, self.standard_error, process.pid),
            ]
        logger.debug("Solver process started (pid=%d)", process.pid)

    def write_line(self, text: str) -> bool:
        """Write one line to solver stdin; returns False when not running."""

        with self._lock:
            process = self._process
            if self._state is not ProcessState.RUNNING or process is None:
                return False
        if process.poll() is not None or process.stdin is None:
            return False
        try:
            process.stdin.write(f"{text}\n".encode(self.encoding))
            process.stdin.flush()
        except (BrokenPipeError, ValueError, OSError):
            logger.debug("Solver stdin closed, dropped line %r", text, exc_info=True)
            return False
        return True

    def stop(self) -> bool:
        """Ask the solver to stop at its next checkpoint; does not change state."""

        return self.write_line(STOP_COMMAND)

    def kill(self) -> bool:
        """Terminate the solver immediately; no-op unless it is still running."""

        with self._lock:
            process = self._process
            if self._state is not ProcessState.RUNNING or process is None:
                return False
            if process.poll() is not None:
                return False
            try:
                process.kill()
            except ProcessLookupError:
                return False
            self._state = ProcessState.KILLED
        logger.debug("Solver process killed (pid=%d)", process.pid)
        return True

    def wait_for_completion(self, timeout: float | None = None) -> int:
        """Block until the solver exits and all output has been delivered.

        A solver that exited cleanly before a racing kill took effect is
        reported as finished, not killed.
        """

        with self._lock:
            process = self._process
            readers = list(self._readers)
        if process is None:
            raise ProcessStateError("Solver process was never started.")

        try:
            exit_code = process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as error:
            raise WaitError(f"Solver did not finish within {timeout} seconds.") from error
        except OSError as error:
            raise WaitError(f"Failed to wait for solver process: {error}") from error

        for reader in readers:
            reader.join(timeout=READER_JOIN_SECONDS)
            if reader.is_alive():
                logger.warning("Output reader %s still running after solver exit", reader.name)
        if process.stdin is not None:
            with contextlib.suppress(OSError, ValueError):
                process.stdin.close()

        with self._lock:
            self._exit_code = exit_code
            if self._state is ProcessState.KILLED and exit_code == 0:
                logger.debug("Solver process exited cleanly before kill (pid=%d)", process.pid)
                self._state = ProcessState.FINISHED
            elif self._state is ProcessState.RUNNING:
                self._state = ProcessState.FINISHED
        return exit_code

    @property
    def killed(self) -> bool:
        return self.state is ProcessState.KILLED

    def _start_reader(
        self,
        stream: IO[bytes] | None,
        signal: Signal[str],
        pid: int,
    ) -> threading.Thread:
        thread = threading.Thread(
            target=_pump,
            args=(stream, signal, self.encoding),
            daemon=True,
            name=f"solver-{pid}-{signal.name}",
        )
        thread.start()
        return thread


def _pump(stream: IO[bytes] | None, signal: Signal[str], encoding: str) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    pending = ""
    try:
        for chunk in iter(lambda: stream.read(READ_CHUNK_BYTES), b""):
            pending = _emit_segments(pending + decoder.decode(chunk), signal)
        pending += decoder.decode(b"", final=True)
        if pending:
            signal.emit(pending)
    finally:
        with contextlib.suppress(OSError):
            stream.close()


def _emit_segments(text: str, signal: Signal[str]) -> str:
    """Emit every terminated segment of ``text`` and return the unterminated tail."""

    end = 0
    for match in _SEGMENT.finditer(text):
        signal.emit(match.group())
        end = match.end()
    return text[end:]


def classify_exit(exit_code: int, *, killed: bool) -> RunOutcomeKind:
    """Map a finished solver process to a run outcome class."""

    if killed:
        return RunOutcomeKind.CANCELLED
    if exit_code == 0:
        return RunOutcomeKind.SUCCEEDED
    return RunOutcomeKind.SOLVER_EXITED_NON_ZERO
