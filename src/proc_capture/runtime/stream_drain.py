"""Stream draining for captured subprocess output.

A drain worker owns exactly one child stream. It reads the stream line by
line until end-of-stream, drops blank lines, and writes every other line
(newline-terminated) to its target buffer followed by any extra sinks,
flushing each sink so tee output shows up in real time.

Two renditions share the same line policy:
- StreamDrainWorker: a daemon thread reading a blocking pipe, joined through
  a CompletionLatch
- drain_stream_async: a coroutine reading an anyio byte stream, joined by the
  enclosing task group
"""

from __future__ import annotations

import codecs
import io
import logging
import re
import threading
from collections.abc import Iterable
from typing import BinaryIO, TextIO

import anyio
from anyio.abc import ByteReceiveStream

from ..errors import StreamReadError
from .latch import CompletionLatch

__all__ = [
    "LineSplitter",
    "StreamDrainWorker",
    "drain_stream_async",
    "write_line",
]

logger = logging.getLogger(__name__)


def write_line(line: str, sinks: Iterable[TextIO]) -> bool:
    """Write a non-blank line to every sink, in order.

    Args:
        line: Line text without its terminator
        sinks: Target buffer first, then tee sinks

    Returns:
        False if the line was blank and therefore dropped
    """
    if not line.strip():
        return False
    for sink in sinks:
        sink.write(line + "\n")
        sink.flush()
    return True


class LineSplitter:
    """Incrementally decode bytes and split them on \\n, \\r\\n or \\r."""

    _NEWLINE = re.compile(r"\r\n|\r|\n")

    def __init__(self, encoding: str, errors: str = "replace") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        self._pending = ""

    def feed(self, data: bytes) -> list[str]:
        """Return the lines completed by data; the tail is kept for later."""
        text = self._pending + self._decoder.decode(data)
        parts = self._NEWLINE.split(text)
        self._pending = parts.pop()
        return parts

    def flush(self) -> list[str]:
        """Return the unterminated tail at end-of-stream, if any."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return self._NEWLINE.split(text) if text else []


class StreamDrainWorker(threading.Thread):
    """Daemon thread that drains one child stream into text sinks.

    The latch is counted down exactly once when the thread finishes, whether
    the stream reached end-of-stream or a read error ended it early.

    Attributes:
        error: StreamReadError recorded when reading failed, else None
        lines_written: Number of non-blank lines forwarded
    """

    def __init__(
        self,
        source: BinaryIO,
        latch: CompletionLatch,
        target: TextIO,
        *extra_sinks: TextIO,
        encoding: str = "utf-8",
        errors: str = "replace",
        name: str | None = None,
    ) -> None:
        super().__init__(name=name or "stream-drain", daemon=True)
        self._source = source
        self._latch = latch
        self._sinks: tuple[TextIO, ...] = (target, *extra_sinks)
        self._encoding = encoding
        self._errors = errors
        self.error: StreamReadError | None = None
        self.lines_written = 0

    def run(self) -> None:
        try:
            # newline=None: \r and \r\n are translated to \n
            with io.TextIOWrapper(
                self._source,
                encoding=self._encoding,
                errors=self._errors,
                newline=None,
            ) as reader:
                for line in reader:
                    if write_line(line.rstrip("\n"), self._sinks):
                        self.lines_written += 1
        except (OSError, ValueError) as e:
            self.error = StreamReadError(self.name, str(e))
            logger.error(f"Error draining {self.name}: {e}")
        finally:
            self._latch.count_down()
            logger.debug(f"{self.name} drained lines={self.lines_written}")


async def drain_stream_async(
    source: ByteReceiveStream,
    target: TextIO,
    *extra_sinks: TextIO,
    encoding: str = "utf-8",
    errors: str = "replace",
    name: str = "stream-drain",
) -> StreamReadError | None:
    """Drain an anyio byte stream into text sinks.

    After a read error the rest of the stream is read and discarded, so the
    child never blocks on a full pipe and the sibling stream can still end.

    Returns:
        The StreamReadError that ended the drain early, or None at end-of-stream
    """
    sinks = (target, *extra_sinks)
    splitter = LineSplitter(encoding, errors)
    try:
        async for chunk in source:
            for line in splitter.feed(chunk):
                write_line(line, sinks)
        for line in splitter.flush():
            write_line(line, sinks)
    except (OSError, ValueError, anyio.BrokenResourceError) as e:
        logger.error(f"Error draining {name}: {e}")
        error = StreamReadError(name, str(e))
    else:
        return None

    await _discard(source, name)
    return error


async def _discard(source: ByteReceiveStream, name: str) -> None:
    """Read the stream to end-of-stream, dropping the bytes."""
    discarded = 0
    try:
        async for chunk in source:
            discarded += len(chunk)
    except (OSError, anyio.BrokenResourceError, anyio.ClosedResourceError) as e:
        logger.debug(f"{name} discard stopped: {e}")
    logger.debug(f"{name} discarded bytes={discarded}")
