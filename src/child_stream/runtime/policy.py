"""Output policies and spawn-time stream wiring.

child-stream runtime module v0.1.0

An OutputPolicy says what happens to one of the child's output streams:

- Inherit: the stream passes through to the parent's stdout/stderr
- Discard: the stream goes to the null device
- RedirectToHandle: the stream is attached to an already-open handle; for
  handles with an OS-level descriptor the child writes to it directly,
  otherwise a pump task copies the pipe into the handle
- FailOnOutput: any output on the stream is reported as an internal fault

Policies are resolved into a StreamWiring *before* the process is spawned, so
an invalid handle fails the launch without starting anything.
"""

from __future__ import annotations

import io
import os
import subprocess
import sys
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import IO, Any, Union

__all__ = [
    "OutputPolicy",
    "Inherit",
    "Discard",
    "RedirectToHandle",
    "FailOnOutput",
    "INHERIT",
    "DISCARD",
    "FAIL_ON_OUTPUT",
    "OutputConfig",
    "output_config",
    "PumpMode",
    "StreamWiring",
    "WiringError",
]

# 可直接交给子进程的句柄：整数 fd 或带 fileno() 的文件对象
Handle = Union[int, IO[Any]]


class WiringError(Exception):
    """A policy could not be turned into spawn-time wiring."""


class PumpMode(str, Enum):
    """What the parent does with a piped output stream after spawn."""

    NONE = "none"  # nothing to do after spawn
    COPY = "copy"  # copy pipe -> handle
    REJECT = "reject"  # any byte is a fault


@dataclass(frozen=True)
class StreamWiring:
    """Spawn-time instructions for one output stream.

    Attributes:
        popen_arg: Value for the stdout=/stderr= argument of Popen
        pump: Post-spawn handling of the piped stream
        sink: Target handle for PumpMode.COPY
    """

    popen_arg: Any = None
    pump: PumpMode = PumpMode.NONE
    sink: Any = None

    @property
    def needs_pipe(self) -> bool:
        return self.popen_arg is subprocess.PIPE


class OutputPolicy:
    """Base class of the closed set of output policies."""

    def wiring(self, stream: str) -> StreamWiring:
        """Resolve this policy for ``stream`` ("stdout" or "stderr").

        Raises:
            WiringError: If the policy cannot be applied
        """
        raise NotImplementedError


@dataclass(frozen=True)
class Inherit(OutputPolicy):
    """Pass the stream through to the parent."""

    def wiring(self, stream: str) -> StreamWiring:
        return StreamWiring()


@dataclass(frozen=True)
class Discard(OutputPolicy):
    """Send the stream to the null device."""

    def wiring(self, stream: str) -> StreamWiring:
        return StreamWiring(popen_arg=subprocess.DEVNULL)


@dataclass(frozen=True)
class RedirectToHandle(OutputPolicy):
    """Attach the stream to a handle the caller has already opened.

    The handle stays owned by the caller; it is neither closed nor
    repositioned by this library.

    Attributes:
        handle: Integer file descriptor or file object
    """

    handle: Handle

    def wiring(self, stream: str) -> StreamWiring:
        fd = _descriptor_of(self.handle)
        if fd is None:
            # 无 OS 级描述符（如 BytesIO）：通过管道 + 转发任务写入
            if not callable(getattr(self.handle, "write", None)):
                raise WiringError(f"{stream} handle {self.handle!r} is neither a descriptor nor writable")
            if isinstance(self.handle, io.TextIOBase):
                raise WiringError(f"{stream} handle {self.handle!r} is text-mode, expected a binary sink")
            _check_writable_object(self.handle, stream)
            return StreamWiring(popen_arg=subprocess.PIPE, pump=PumpMode.COPY, sink=self.handle)

        try:
            os.fstat(fd)
        except OSError as e:
            raise WiringError(f"{stream} handle fd={fd} is not open: {e}") from e
        _check_writable_object(self.handle, stream)
        _check_writable_descriptor(fd, stream)

        # 先刷新调用方已写入缓冲区的数据，保证顺序
        flush = getattr(self.handle, "flush", None)
        if callable(flush):
            try:
                flush()
            except (OSError, ValueError) as e:
                raise WiringError(f"failed to flush {stream} handle: {e}") from e

        return StreamWiring(popen_arg=fd)


@dataclass(frozen=True)
class FailOnOutput(OutputPolicy):
    """Treat any output on the stream as a fault.

    Useful to assert that a tool writes nothing to stderr. The stream is
    drained to the end so the child never blocks on a full pipe.
    """

    def wiring(self, stream: str) -> StreamWiring:
        return StreamWiring(popen_arg=subprocess.PIPE, pump=PumpMode.REJECT)


INHERIT = Inherit()
DISCARD = Discard()
FAIL_ON_OUTPUT = FailOnOutput()


def _descriptor_of(handle: Handle) -> int | None:
    """Return the OS-level descriptor behind ``handle``, or None if it has none."""
    if isinstance(handle, bool):
        raise WiringError(f"invalid handle {handle!r}")
    if isinstance(handle, int):
        if handle < 0:
            raise WiringError(f"invalid file descriptor {handle}")
        return handle

    fileno = getattr(handle, "fileno", None)
    if not callable(fileno):
        return None
    try:
        return fileno()
    except io.UnsupportedOperation:
        return None
    except (OSError, ValueError) as e:
        # 已关闭的文件对象
        raise WiringError(f"handle {handle!r} is unusable: {e}") from e


def _check_writable_object(handle: Handle, stream: str) -> None:
    writable = getattr(handle, "writable", None)
    if not callable(writable):
        return
    try:
        ok = writable()
    except (OSError, ValueError) as e:
        raise WiringError(f"{stream} handle {handle!r} is unusable: {e}") from e
    if not ok:
        raise WiringError(f"{stream} handle {handle!r} is not opened for writing")


def _check_writable_descriptor(fd: int, stream: str) -> None:
    """Reject descriptors opened read-only; the child would fail with EBADF."""
    if sys.platform == "win32":
        return
    import fcntl

    try:
        flags = fcntl.fcntl(fd, fcntl.F_GETFL)
    except OSError as e:
        raise WiringError(f"{stream} handle fd={fd} is not open: {e}") from e
    if (flags & os.O_ACCMODE) not in (os.O_WRONLY, os.O_RDWR):
        raise WiringError(f"{stream} handle fd={fd} is not opened for writing")


@dataclass(frozen=True)
class OutputConfig:
    """Policies for the child's stdout and stderr, chosen independently.

    Example:
        config = output_config().with_stderr(DISCARD)
    """

    stdout: OutputPolicy = field(default_factory=Inherit)
    stderr: OutputPolicy = field(default_factory=Inherit)

    def with_stdout(self, policy: OutputPolicy) -> "OutputConfig":
        return replace(self, stdout=policy)

    def with_stderr(self, policy: OutputPolicy) -> "OutputConfig":
        return replace(self, stderr=policy)


def output_config(
    stdout: OutputPolicy | None = None,
    stderr: OutputPolicy | None = None,
) -> OutputConfig:
    """Build an OutputConfig; unspecified streams are inherited."""
    return OutputConfig(
        stdout=stdout if stdout is not None else INHERIT,
        stderr=stderr if stderr is not None else INHERIT,
    )
