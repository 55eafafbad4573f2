"""
Process runner used by the execution orchestrator.

:class:`ProcessRunner` launches exactly one OS process from an explicit
argument vector (never through a shell), feeds it standard input,
enforces a wall-clock timeout and returns a :class:`ProcessOutcome`.

Output is drained incrementally by reader threads and only the first
``max_stdout_chars`` / ``max_stderr_chars`` characters are kept; the
remainder is read and discarded so the child never blocks on a full
pipe and memory use stays bounded.

Each invocation ends in exactly one of three states:

* completed - the process exited on its own; its exit code is reported
  (``0`` when it was terminated by a signal and has no exit code).
* timed out - the timer fired first; the process group is killed with
  ``SIGKILL``, the exit code is forced to ``124`` and stderr is replaced
  with a fixed message.
* spawn failed - the program could not be launched; stderr carries the
  error message and the exit code is ``1``.
"""

from __future__ import annotations

import codecs
import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional, Sequence

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
TIMEOUT_MESSAGE = "Time Limit Exceeded"
SPAWN_FAILURE_EXIT_CODE = 1

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_MAX_STDOUT_CHARS = 50_000
DEFAULT_MAX_STDERR_CHARS = 10_000

_CHUNK_SIZE = 65536
# How long to wait for the output pipes to close once the process has exited.
_DRAIN_GRACE_SECS = 1.0


@dataclass
class ProcessOutcome:
    """Result of running a single process.

    Attributes
    ----------
    stdout: str
        Captured standard output, at most ``max_stdout_chars`` long.
    stderr: str
        Captured standard error, at most ``max_stderr_chars`` long.
    exit_code: int
        Exit status of the process, ``124`` on timeout.
    timed_out: bool
        Whether the process was killed for exceeding its timeout.
    truncated: bool
        Whether either stream produced more output than its cap.
    duration_ms: int
        Wall-clock time in milliseconds.
    """

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False
    truncated: bool = False
    duration_ms: int = 0


class _BoundedBuffer:
    """Accumulate decoded text up to ``limit`` characters."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.truncated = False
        self._parts: List[str] = []
        self._size = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: bytes, final: bool = False) -> None:
        text = self._decoder.decode(data, final=final)
        if not text:
            return
        room = self.limit - self._size
        if room <= 0:
            self.truncated = True
            return
        kept = text[:room]
        self._parts.append(kept)
        self._size += len(kept)
        if len(kept) < len(text):
            self.truncated = True

    def getvalue(self) -> str:
        return "".join(self._parts)


def _drain(stream: IO[bytes], buffer: _BoundedBuffer) -> None:
    try:
        while True:
            chunk = stream.read1(_CHUNK_SIZE)
            if not chunk:
                break
            buffer.feed(chunk)
        buffer.feed(b"", final=True)
    finally:
        stream.close()


def _feed_stdin(stream: IO[bytes], data: bytes) -> None:
    try:
        if data:
            stream.write(data)
            stream.flush()
    except (BrokenPipeError, ConnectionResetError):
        # The child exited or closed stdin without reading everything.
        logger.debug("Process closed stdin before all input was written")
    finally:
        try:
            stream.close()
        except (BrokenPipeError, ConnectionResetError):
            pass


def _kill(process: subprocess.Popen) -> None:
    """Kill ``process`` together with everything in its process group."""
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            pass
    try:
        process.kill()
    except ProcessLookupError:
        pass


class ProcessRunner:
    """Run one process at a time with bounded output capture."""

    def __init__(
        self,
        max_stdout_chars: int = DEFAULT_MAX_STDOUT_CHARS,
        max_stderr_chars: int = DEFAULT_MAX_STDERR_CHARS,
    ) -> None:
        self.max_stdout_chars = max_stdout_chars
        self.max_stderr_chars = max_stderr_chars

    def run(
        self,
        args: Sequence[str],
        stdin: Optional[str] = "",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cwd: Optional[Path] = None,
    ) -> ProcessOutcome:
        """Run ``args`` and capture its output.

        Parameters
        ----------
        args: Sequence[str]
            Program followed by its arguments.  No shell is involved.
        stdin: str, optional
            Data written to standard input before it is closed.
        timeout_ms: int
            Wall-clock limit in milliseconds.
        cwd: Path, optional
            Working directory for the process.

        Returns
        -------
        ProcessOutcome
            Captured output and classified exit status.
        """
        start_time = time.perf_counter()
        try:
            process = subprocess.Popen(
                list(args),
                cwd=str(cwd) if cwd is not None else None,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            logger.warning("Failed to spawn %s: %s", args[0] if args else "<empty>", exc)
            return ProcessOutcome(
                stdout="",
                stderr=str(exc),
                exit_code=SPAWN_FAILURE_EXIT_CODE,
                duration_ms=int((time.perf_counter() - start_time) * 1000),
            )

        stdout_buf = _BoundedBuffer(self.max_stdout_chars)
        stderr_buf = _BoundedBuffer(self.max_stderr_chars)
        timed_out = threading.Event()

        def kill_proc() -> None:
            if process.poll() is None:
                timed_out.set()
                _kill(process)

        workers = [
            threading.Thread(target=_drain, args=(process.stdout, stdout_buf), daemon=True),
            threading.Thread(target=_drain, args=(process.stderr, stderr_buf), daemon=True),
            threading.Thread(
                target=_feed_stdin,
                args=(process.stdin, (stdin or "").encode("utf-8")),
                daemon=True,
            ),
        ]
        timer = threading.Timer(timeout_ms / 1000.0, kill_proc)
        timer.daemon = True
        timer.start()
        for worker in workers:
            worker.start()

        try:
            returncode = process.wait()
        finally:
            timer.cancel()

        self._join(workers, process)
        duration = int((time.perf_counter() - start_time) * 1000)

        if timed_out.is_set():
            logger.info("Process %s exceeded %sms and was killed", args[0], timeout_ms)
            return ProcessOutcome(
                stdout=stdout_buf.getvalue(),
                stderr=TIMEOUT_MESSAGE,
                exit_code=TIMEOUT_EXIT_CODE,
                timed_out=True,
                truncated=stdout_buf.truncated,
                duration_ms=duration,
            )

        if returncode < 0:
            logger.debug("Process %s terminated by signal %s", args[0], -returncode)
            returncode = 0
        return ProcessOutcome(
            stdout=stdout_buf.getvalue(),
            stderr=stderr_buf.getvalue(),
            exit_code=returncode,
            truncated=stdout_buf.truncated or stderr_buf.truncated,
            duration_ms=duration,
        )

    @staticmethod
    def _join(workers: List[threading.Thread], process: subprocess.Popen) -> None:
        deadline = time.monotonic() + _DRAIN_GRACE_SECS
        for worker in workers:
            worker.join(max(0.0, deadline - time.monotonic()))
        if any(worker.is_alive() for worker in workers):
            # A leftover descendant is holding the pipes open.
            logger.warning("Output pipes still open after exit; killing process group %s", process.pid)
            _kill(process)
            for worker in workers:
                worker.join(_DRAIN_GRACE_SECS)
