"""Process runner with concurrent stdout/stderr capture.

proc-capture runtime module v0.1.0

This module provides:
- Blocking execution with both output streams captured into text buffers
- Optional real-time tee of each stream to the caller's own console
- Deadlock-free draining (one drain worker per stream)
- Interruptible waits that keep the output captured so far

Key design points:
- Each buffer has exactly one writer, its own drain worker
- Workers are joined through a two-party CompletionLatch, then the runner
  waits for the child to exit
- Blank lines are dropped; every other line is stored with a trailing newline
- Buffers accumulate across repeated execute() calls
"""

from __future__ import annotations

import io
import logging
import os
import subprocess
import sys
import threading
import time
from collections.abc import Sequence
from typing import Any, TextIO

import anyio
import anyio.to_thread
from anyio.abc import ByteReceiveStream

from ..config import get_config
from ..errors import (
    ConcurrentExecutionError,
    ExecutionInterruptedError,
    InvalidCommandError,
    LaunchError,
    StreamReadError,
)
from .latch import CompletionLatch
from .stream_drain import StreamDrainWorker, drain_stream_async

__all__ = [
    "ProcessRunner",
]

logger = logging.getLogger(__name__)


def _normalize_argv(argv: Any) -> tuple[str, ...]:
    """Validate a command line and freeze it into a tuple of strings."""
    if isinstance(argv, (str, bytes)):
        raise InvalidCommandError(
            "command must be a sequence of arguments, not a single string"
        )
    try:
        items = tuple(os.fspath(arg) for arg in argv)
    except TypeError as e:
        raise InvalidCommandError(f"invalid command: {e}") from e

    if not items:
        raise InvalidCommandError("command must not be empty")
    for item in items:
        if not isinstance(item, str):
            raise InvalidCommandError(f"command arguments must be str, got {item!r}")
    return items


class ProcessRunner:
    """Runs a command and captures its stdout and stderr.

    Example:
        runner = ProcessRunner(["git", "status", "--short"])
        code = runner.execute(tee_stdout=True)
        if code != 0:
            runner.dump()

    Attributes:
        encoding: Encoding used to decode child output
        errors: Decode error handler
        poll_interval: Seconds between interrupt checks while waiting for exit
    """

    def __init__(
        self,
        argv: Sequence[str | os.PathLike[str]],
        *,
        encoding: str | None = None,
        errors: str | None = None,
        poll_interval: float | None = None,
    ) -> None:
        """Create a runner; nothing is started until execute().

        Args:
            argv: Program path followed by its arguments
            encoding: Output encoding (default from config)
            errors: Decode error handler (default from config)
            poll_interval: Exit-wait poll interval (default from config)

        Raises:
            InvalidCommandError: If argv is empty or not a sequence of strings
        """
        self._argv = _normalize_argv(argv)

        config = get_config()
        self.encoding = encoding or config.encoding
        self.errors = errors or config.errors
        self.poll_interval = poll_interval if poll_interval is not None else config.poll_interval

        self._stdout = io.StringIO()
        self._stderr = io.StringIO()
        self._stream_errors: list[StreamReadError] = []
        self._returncode: int | None = None

        self._exec_lock = threading.Lock()
        self._interrupt_requested = threading.Event()
        self._latch: CompletionLatch | None = None
        # Child and drain workers left behind by an interrupted execute()
        self._abandoned: tuple[subprocess.Popen[bytes], list[StreamDrainWorker]] | None = None

    def __repr__(self) -> str:
        return f"ProcessRunner(argv={list(self._argv)!r}, returncode={self._returncode})"

    @property
    def argv(self) -> tuple[str, ...]:
        return self._argv

    @property
    def command(self) -> str:
        """Command joined by single spaces, for diagnostics only."""
        return " ".join(self._argv)

    @property
    def stdout(self) -> str:
        """Captured stdout so far; complete once execute() has returned."""
        return self._stdout.getvalue()

    @property
    def stderr(self) -> str:
        """Captured stderr so far; complete once execute() has returned."""
        return self._stderr.getvalue()

    @property
    def stream_errors(self) -> list[StreamReadError]:
        """Read errors recorded by drain workers, oldest first."""
        return list(self._stream_errors)

    @property
    def returncode(self) -> int | None:
        """Exit code of the last completed execution."""
        return self._returncode

    def dump(self) -> None:
        """Print captured stdout to sys.stdout and captured stderr to sys.stderr."""
        print(self.stdout, file=sys.stdout, flush=True)
        print(self.stderr, file=sys.stderr, flush=True)

    def interrupt(self) -> None:
        """Cancel the wait of an execute() running in another thread.

        The interrupted execute() raises ExecutionInterruptedError. Has no
        effect when no execution is in progress.
        """
        self._interrupt_requested.set()
        latch = self._latch
        if latch is not None:
            latch.interrupt()

    def execute(self, tee_stdout: bool = False, tee_stderr: bool | None = None) -> int:
        """Run the command and block until it has finished.

        If a previous execution was interrupted, its child is waited for
        first: its drain workers must finish before new output is appended.

        Args:
            tee_stdout: Also write child stdout lines to sys.stdout
            tee_stderr: Also write child stderr lines to sys.stderr
                (None = same as tee_stdout)

        Returns:
            The child's exit code

        Raises:
            LaunchError: If the process cannot be spawned
            ExecutionInterruptedError: If interrupt() cancelled the wait
            ConcurrentExecutionError: If another execute() is running on this runner
        """
        if tee_stderr is None:
            tee_stderr = tee_stdout

        self._acquire()
        try:
            return self._execute(tee_stdout, tee_stderr)
        finally:
            self._latch = None
            self._exec_lock.release()

    async def execute_async(
        self,
        tee_stdout: bool = False,
        tee_stderr: bool | None = None,
    ) -> int:
        """Run the command on the event loop; same contract as execute().

        Both streams are drained by tasks of one anyio task group. Cancelling
        the caller propagates the cancellation, and anyio's process cleanup
        kills the child. Output captured up to that point is kept.

        Raises:
            LaunchError: If the process cannot be spawned
            ConcurrentExecutionError: If another execution is running on this runner
        """
        if tee_stderr is None:
            tee_stderr = tee_stdout

        self._acquire()
        try:
            return await self._execute_async(tee_stdout, tee_stderr)
        finally:
            self._exec_lock.release()

    # =========================================================================
    # Blocking execution
    # =========================================================================

    def _execute(self, tee_stdout: bool, tee_stderr: bool) -> int:
        self._settle_abandoned()
        start_time = time.monotonic()
        self._interrupt_requested.clear()

        self._announce(f"Executing {self.command}")
        process = self._spawn()

        latch = CompletionLatch(2)
        self._latch = latch
        workers = [
            StreamDrainWorker(
                process.stdout,
                latch,
                self._stdout,
                *self._tee_sinks(tee_stdout, sys.stdout),
                encoding=self.encoding,
                errors=self.errors,
                name="stdout",
            ),
            StreamDrainWorker(
                process.stderr,
                latch,
                self._stderr,
                *self._tee_sinks(tee_stderr, sys.stderr),
                encoding=self.encoding,
                errors=self.errors,
                name="stderr",
            ),
        ]
        for worker in workers:
            worker.start()

        # interrupt() may have run before the latch was published
        if self._interrupt_requested.is_set():
            latch.interrupt()

        try:
            latch.wait()
        except ExecutionInterruptedError:
            logger.debug(f"Wait interrupted pid={process.pid}, leaving drain workers running")
            self._abandoned = (process, workers)
            raise

        self._stream_errors.extend(w.error for w in workers if w.error is not None)
        self._announce(f"{self._elapsed_ms(start_time)}ms: {self.command}")

        try:
            returncode = self._wait_for_exit(process)
        except ExecutionInterruptedError:
            self._abandoned = (process, [])
            raise
        self._returncode = returncode
        logger.debug(f"Subprocess completed pid={process.pid} returncode={returncode}")
        return returncode

    def _spawn(self) -> subprocess.Popen[bytes]:
        """Start the child with piped stdout/stderr.

        stdin is DEVNULL so the child never competes for the caller's stdin.
        """
        try:
            process = subprocess.Popen(
                self._argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logger.debug(f"Failed to start subprocess argv={self._argv[0]}: {e}")
            raise LaunchError(self._argv, e.strerror or str(e)) from e

        logger.debug(f"Started subprocess pid={process.pid} argv={self._argv[0]}")
        return process

    def _settle_abandoned(self) -> None:
        """Join the workers and reap the child of an interrupted execution.

        Blocks until that child has closed its streams and exited.
        """
        if self._abandoned is None:
            return
        process, workers = self._abandoned
        logger.debug(f"Waiting for interrupted subprocess pid={process.pid}")
        for worker in workers:
            worker.join()
        returncode = process.wait()
        self._stream_errors.extend(w.error for w in workers if w.error is not None)
        self._abandoned = None
        logger.debug(f"Interrupted subprocess reaped pid={process.pid} returncode={returncode}")

    def _wait_for_exit(self, process: subprocess.Popen[bytes]) -> int:
        """Wait for the child to exit, checking for interrupt() between polls."""
        while True:
            try:
                return process.wait(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                if self._interrupt_requested.is_set():
                    raise ExecutionInterruptedError(
                        f"interrupted while waiting for pid={process.pid} to exit"
                    ) from None

    # =========================================================================
    # Async execution
    # =========================================================================

    async def _execute_async(self, tee_stdout: bool, tee_stderr: bool) -> int:
        if self._abandoned is not None:
            await anyio.to_thread.run_sync(self._settle_abandoned)
        start_time = time.monotonic()

        self._announce(f"Executing {self.command}")
        try:
            process = await anyio.open_process(
                list(self._argv),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logger.debug(f"Failed to start subprocess argv={self._argv[0]}: {e}")
            raise LaunchError(self._argv, e.strerror or str(e)) from e

        logger.debug(f"Started subprocess pid={process.pid} argv={self._argv[0]}")

        async with process:
            async with anyio.create_task_group() as tg:
                tg.start_soon(
                    self._drain_async,
                    process.stdout,
                    self._stdout,
                    self._tee_sinks(tee_stdout, sys.stdout),
                    "stdout",
                )
                tg.start_soon(
                    self._drain_async,
                    process.stderr,
                    self._stderr,
                    self._tee_sinks(tee_stderr, sys.stderr),
                    "stderr",
                )

            self._announce(f"{self._elapsed_ms(start_time)}ms: {self.command}")
            returncode = await process.wait()

        self._returncode = returncode
        logger.debug(f"Subprocess completed pid={process.pid} returncode={returncode}")
        return returncode

    async def _drain_async(
        self,
        source: ByteReceiveStream | None,
        target: TextIO,
        tee_sinks: list[TextIO],
        name: str,
    ) -> None:
        if source is None:
            return
        error = await drain_stream_async(
            source,
            target,
            *tee_sinks,
            encoding=self.encoding,
            errors=self.errors,
            name=name,
        )
        if error is not None:
            self._stream_errors.append(error)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _acquire(self) -> None:
        if not self._exec_lock.acquire(blocking=False):
            raise ConcurrentExecutionError(
                f"an execution of '{self.command}' is already in progress"
            )

    @staticmethod
    def _tee_sinks(enabled: bool, console: TextIO) -> list[TextIO]:
        return [console] if enabled else []

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)

    @staticmethod
    def _announce(message: str) -> None:
        """Diagnostic line on the caller's stderr; never part of captured output."""
        print(message, file=sys.stderr, flush=True)
