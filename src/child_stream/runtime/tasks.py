"""Bodies of the background tasks started for a child process.

child-stream runtime module v0.1.0

Each factory returns a zero-argument callable suitable for spawn_guarded():

- make_stdin_feeder: copy an input source into the child's stdin, then close it
- make_exit_waiter: wait for termination and translate the status
- make_output_copier: copy a piped output stream into a caller handle
- make_output_rejecter: report any output on a stream as a fault

Ordinary I/O failures are returned as outcomes. Anything else propagates to
the fault barrier.
"""

from __future__ import annotations

import io
import logging
import subprocess
import threading
from collections.abc import Iterable, Iterator
from typing import IO, Any, Union

from .outcome import (
    ExitOutcome,
    InternalFault,
    StdinFailed,
    WaitFailed,
    outcome_from_returncode,
)
from .spawner import TaskBody

__all__ = [
    "InputSource",
    "check_input_source",
    "iter_input_chunks",
    "feed_stdin",
    "make_stdin_feeder",
    "make_exit_waiter",
    "make_output_copier",
    "make_output_rejecter",
]

logger = logging.getLogger(__name__)

# 输入源：字节串、二进制可读对象、或字节块的可迭代对象
InputSource = Union[bytes, bytearray, memoryview, IO[bytes], Iterable[bytes]]

# 读取输入源时视为普通 I/O 失败的异常（ValueError: 读取已关闭的文件）
_READ_ERRORS = (OSError, ValueError)

# 转发输出时的失败：另含 TypeError（目标句柄不接受 bytes）
_COPY_ERRORS = _READ_ERRORS + (TypeError,)


def check_input_source(source: Any) -> None:
    """Reject sources that can never produce bytes.

    Called before spawning so misuse starts no process.

    Raises:
        TypeError: If ``source`` is text or not a supported source type
    """
    if isinstance(source, str):
        raise TypeError("input source must be bytes, not str")
    if isinstance(source, (bytes, bytearray, memoryview)):
        return
    if isinstance(source, io.TextIOBase):
        raise TypeError(f"input source {source!r} is a text stream, expected bytes")
    if callable(getattr(source, "read", None)):
        mode = getattr(source, "mode", "b")
        if isinstance(mode, str) and "b" not in mode:
            raise TypeError(f"input source {source!r} is opened in text mode")
        return
    if isinstance(source, Iterable):
        return
    raise TypeError(f"unsupported input source type: {type(source).__name__}")


def iter_input_chunks(source: InputSource, chunk_size: int) -> Iterator[bytes]:
    """Yield the source as byte chunks of at most ``chunk_size`` bytes."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        view = memoryview(source).cast("B")
        for start in range(0, len(view), chunk_size):
            yield bytes(view[start:start + chunk_size])
        return

    read = getattr(source, "read", None)
    if callable(read):
        while True:
            chunk = read(chunk_size)
            if not chunk:
                return
            if not isinstance(chunk, (bytes, bytearray, memoryview)):
                raise TypeError(f"input source returned {type(chunk).__name__}, expected bytes")
            yield bytes(chunk)

    for chunk in source:  # type: ignore[union-attr]
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise TypeError(f"input source yielded {type(chunk).__name__}, expected bytes")
        if chunk:
            yield bytes(chunk)


def _write_all(stream: IO[bytes], data: bytes) -> None:
    # 原始管道的 write() 可能只写入部分数据
    view = memoryview(data)
    while view:
        written = stream.write(view)
        if written is None:
            raise BlockingIOError("stdin pipe is non-blocking")
        view = view[written:]


def feed_stdin(source: InputSource, stdin: IO[bytes], chunk_size: int) -> int:
    """Copy ``source`` into ``stdin`` and close ``stdin`` exactly once.

    The write-end is closed whether the copy succeeds or fails; a closable
    source is closed too, since ownership was handed to the feeder.

    Returns:
        Number of bytes written

    Raises:
        OSError, ValueError: On read or write failure
    """
    written = 0
    try:
        for chunk in iter_input_chunks(source, chunk_size):
            _write_all(stdin, chunk)
            written += len(chunk)
    finally:
        try:
            stdin.close()
        finally:
            close = getattr(source, "close", None)
            if callable(close) and not isinstance(source, (bytes, bytearray, memoryview)):
                close()
    return written


def make_stdin_feeder(
    source: InputSource,
    stdin: IO[bytes],
    chunk_size: int,
    label: str = "",
) -> TaskBody:
    """Build the feeder task body.

    The returned body owns ``source`` and ``stdin`` exclusively. It reports
    nothing on success, since only the waiter may report a clean exit.
    """

    def body() -> ExitOutcome | None:
        try:
            written = feed_stdin(source, stdin, chunk_size)
        except _READ_ERRORS as e:
            logger.debug(f"[{label}] stdin feed failed: {e}")
            return StdinFailed.from_exception(e)
        logger.debug(f"[{label}] fed {written} bytes to stdin")
        return None

    return body


def make_exit_waiter(
    process: subprocess.Popen,
    pumps: Iterable[threading.Thread] = (),
    label: str = "",
) -> TaskBody:
    """Build the waiter task body.

    The waiter owns ``process``. After the child exits it joins the output
    pump threads, so a reported success means redirected output has been
    fully delivered to its handles.
    """
    pump_threads = list(pumps)

    def body() -> ExitOutcome:
        try:
            returncode = process.wait()
        except OSError as e:
            logger.debug(f"[{label}] wait failed: {e}")
            return WaitFailed.from_exception(e)

        for pump in pump_threads:
            pump.join()

        outcome = outcome_from_returncode(returncode)
        logger.debug(f"[{label}] exited with returncode={returncode}")
        return outcome

    return body


def make_output_copier(
    pipe: IO[bytes],
    sink: Any,
    chunk_size: int,
    stream: str = "stdout",
    label: str = "",
) -> TaskBody:
    """Build a pump that copies ``pipe`` into the caller's ``sink``.

    The sink stays open (it belongs to the caller); the pipe is closed.
    If the sink fails, the pipe is still drained to end-of-stream so the
    child is not killed by a broken pipe.
    """

    def body() -> ExitOutcome | None:
        copied = 0
        error: BaseException | None = None
        try:
            with pipe:
                while True:
                    chunk = pipe.read(chunk_size)
                    if not chunk:
                        break
                    if error is not None:
                        continue
                    try:
                        sink.write(chunk)
                    except _COPY_ERRORS as e:
                        error = e
                        continue
                    copied += len(chunk)
            if error is None:
                flush = getattr(sink, "flush", None)
                if callable(flush):
                    flush()
        except _COPY_ERRORS as e:
            error = e
        if error is not None:
            logger.debug(f"[{label}] {stream} redirect failed after {copied} bytes: {error}")
            return InternalFault(
                message=f"{stream} redirect failed: {error}",
                task=f"{stream}-copier",
                cause=error,
            )
        logger.debug(f"[{label}] copied {copied} bytes of {stream}")
        return None

    return body


def make_output_rejecter(
    pipe: IO[bytes],
    chunk_size: int,
    stream: str = "stderr",
    label: str = "",
) -> TaskBody:
    """Build a pump that reports any output on ``pipe`` as a fault.

    The pipe is drained to end-of-stream so the child is never blocked on it.
    """

    def body() -> ExitOutcome | None:
        seen = 0
        sample = b""
        with pipe:
            while True:
                chunk = pipe.read(chunk_size)
                if not chunk:
                    break
                if not sample:
                    sample = bytes(chunk[:80])
                seen += len(chunk)
        if not seen:
            return None
        logger.debug(f"[{label}] unexpected {seen} bytes on {stream}")
        return InternalFault(
            message=f"unexpected output on {stream}: {sample!r}",
            task=f"{stream}-monitor",
        )

    return body
