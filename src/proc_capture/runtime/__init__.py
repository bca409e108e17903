"""Runtime module for subprocess execution and output capture.

This module provides blocking and async process execution with both
output streams drained concurrently into in-memory buffers.
"""

from __future__ import annotations

from .latch import CompletionLatch
from .process_runner import ProcessRunner
from .stream_drain import LineSplitter, StreamDrainWorker

__all__ = [
    "CompletionLatch",
    "LineSplitter",
    "ProcessRunner",
    "StreamDrainWorker",
]
