"""Count-down latch used to join stream drain workers.

Each worker counts the latch down once when its stream is exhausted; the
caller blocks in wait() until the count reaches zero. The wait can be
interrupted from another thread.
"""

from __future__ import annotations

import threading

from ..errors import ExecutionInterruptedError

__all__ = ["CompletionLatch"]


class CompletionLatch:
    """Blocks waiters until a fixed number of parties have counted down.

    Example:
        latch = CompletionLatch(2)
        threading.Thread(target=work_then(latch.count_down)).start()
        threading.Thread(target=work_then(latch.count_down)).start()
        latch.wait()
    """

    def __init__(self, count: int) -> None:
        if count < 0:
            raise ValueError("count must be non-negative")
        self._count = count
        self._interrupted = False
        self._cond = threading.Condition()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    @property
    def interrupted(self) -> bool:
        with self._cond:
            return self._interrupted

    def count_down(self) -> None:
        """Decrement the count, releasing waiters when it reaches zero.

        Counting down past zero is a no-op.
        """
        with self._cond:
            if self._count > 0:
                self._count -= 1
                if self._count == 0:
                    self._cond.notify_all()

    def interrupt(self) -> None:
        """Wake all waiters; those still blocked raise ExecutionInterruptedError."""
        with self._cond:
            self._interrupted = True
            self._cond.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the count reaches zero.

        Args:
            timeout: Seconds to wait, None to wait forever

        Returns:
            True if the count reached zero, False on timeout

        Raises:
            ExecutionInterruptedError: If interrupt() was called before the
                count reached zero
        """
        with self._cond:
            released = self._cond.wait_for(
                lambda: self._count == 0 or self._interrupted,
                timeout=timeout,
            )
            if self._count == 0:
                return True
            if self._interrupted:
                raise ExecutionInterruptedError(
                    f"interrupted with {self._count} stream(s) still open"
                )
            return released
