"""Single-resolution exit future and the ChildStream facade.

child-stream runtime module v0.1.0
"""

from __future__ import annotations

import io
import threading
from collections.abc import Iterator
from enum import Enum

from ..errors import AlreadyConsumedError
from .outcome import ExitOutcome
from .spawner import CompletionChannel

__all__ = [
    "FutureState",
    "ExitFuture",
    "ChildStream",
]


class FutureState(str, Enum):
    """ExitFuture 状态机: PENDING -> RESOLVED -> CONSUMED。"""

    PENDING = "pending"
    RESOLVED = "resolved"
    CONSUMED = "consumed"


class ExitFuture:
    """Handle on the first outcome reported for one child process.

    The outcome can be taken exactly once, through either ``wait()`` or
    ``outcome()``. Any later attempt raises AlreadyConsumedError immediately
    without touching the channel again, including from another thread while
    the first call is still blocked.
    """

    def __init__(self, channel: CompletionChannel) -> None:
        self._channel = channel
        self._lock = threading.Lock()
        self._claimed = False
        self._state = FutureState.PENDING

    @property
    def state(self) -> FutureState:
        with self._lock:
            if self._state == FutureState.PENDING and self._channel.resolved:
                return FutureState.RESOLVED
            return self._state

    def done(self) -> bool:
        """Whether an outcome is available (or was already taken)."""
        return self.state != FutureState.PENDING

    def outcome(self) -> ExitOutcome:
        """Block until the authoritative outcome arrives and return it.

        Raises:
            AlreadyConsumedError: If the outcome was already taken
        """
        with self._lock:
            if self._claimed:
                raise AlreadyConsumedError()
            self._claimed = True

        result = self._channel.receive()
        with self._lock:
            self._state = FutureState.CONSUMED
        return result

    def wait(self) -> int:
        """Block until the child's fate is known.

        Returns:
            The exit code (always 0) on success

        Raises:
            ExitStatusError: Nonzero exit code or undecodable status
            StdinFailedError: Feeding stdin failed
            WaitFailedError: The OS-level wait failed
            InternalFaultError: A background task faulted
            AlreadyConsumedError: The outcome was already taken
        """
        result = self.outcome()
        error = result.to_error()
        if error is not None:
            if result.cause is not None:
                raise error from result.cause
            raise error
        return result.code  # type: ignore[union-attr]


class ChildStream(io.RawIOBase):
    """Buffered reader over a child's stdout paired with its ExitFuture.

    Reading and waiting are independent: the background tasks keep running
    while the caller reads, reaching end-of-stream does not resolve the
    future, and waiting does not require the stream to be drained. Callers
    normally drain the stream and then call ``wait()``.

    Example:
        with run_reader(output_config(), b"3\\n1\\n2\\n", ProcessSpec("sort")) as stream:
            data = stream.read()
        stream.wait()
    """

    def __init__(self, stdout: io.BufferedReader, future: ExitFuture, pid: int | None = None) -> None:
        super().__init__()
        self.stdout = stdout
        self.future = future
        self.pid = pid

    # -- reading -------------------------------------------------------------

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        return self.stdout.readinto(buffer)

    def read(self, size: int = -1) -> bytes:  # type: ignore[override]
        return self.stdout.read(size)

    def readline(self, size: int = -1) -> bytes:  # type: ignore[override]
        return self.stdout.readline(size)

    def peek(self, size: int = 0) -> bytes:
        return self.stdout.peek(size)

    def iter_chunks(self, size: int = 64 * 1024) -> Iterator[bytes]:
        """Yield stdout in chunks as soon as data is available."""
        while True:
            chunk = self.stdout.read1(size)
            if not chunk:
                return
            yield chunk

    def fileno(self) -> int:
        return self.stdout.fileno()

    def close(self) -> None:
        """Close the stdout reader. The future is unaffected."""
        if not self.closed:
            self.stdout.close()
        super().close()

    # -- completion ----------------------------------------------------------

    def wait(self) -> int:
        """Wait for the child; see ExitFuture.wait()."""
        return self.future.wait()

    def outcome(self) -> ExitOutcome:
        """Take the structured outcome; see ExitFuture.outcome()."""
        return self.future.outcome()

    def __repr__(self) -> str:
        return f"ChildStream(pid={self.pid}, state={self.future.state.value})"
