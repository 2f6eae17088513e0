"""Process launcher with threaded stdin feeding and exit reporting.

child-stream runtime module v0.1.0

This module provides:
- Declarative stdout/stderr wiring resolved before spawn
- A stdin feeder task when an input source is supplied
- An exit waiter task whose outcome resolves the caller's ExitFuture
- Two call shapes: run_consumer (blocking) and run_reader (ChildStream)

Key design points:
- All wiring is validated before Popen is called, so a bad handle never
  leaves a half-configured child behind
- Ownership moves: the stdin write-end goes to the feeder, the Popen handle
  to the waiter; the caller keeps only the stdout reader and the future
- Every task reports through one CompletionChannel; the first terminal
  outcome wins and later ones are logged and dropped
"""

from __future__ import annotations

import io
import logging
import subprocess
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any

from ..config import get_config
from ..errors import SpawnFailedError
from .future import ChildStream, ExitFuture
from .outcome import ExitOutcome
from .policy import INHERIT, OutputConfig, PumpMode, StreamWiring, WiringError
from .spawner import CompletionChannel, run_guarded, spawn_guarded
from .tasks import (
    InputSource,
    check_input_source,
    make_exit_waiter,
    make_output_copier,
    make_output_rejecter,
    make_stdin_feeder,
)

__all__ = [
    "ProcessSpec",
    "ChildProcess",
    "ProcessLauncher",
    "run_consumer",
    "run_reader",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        executable: Program to run (looked up on PATH if not a path)
        args: Arguments, in order, not including the executable
        cwd: Working directory (None = inherit parent)
        env: Environment variables (None = inherit parent)
    """

    executable: str
    args: tuple[str, ...] = ()
    cwd: Path | None = None
    env: Mapping[str, str] | None = None

    def __post_init__(self) -> None:
        # 允许传入 list，统一为不可变 tuple
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))

    @classmethod
    def from_argv(
        cls,
        argv: Sequence[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "ProcessSpec":
        if not argv:
            raise ValueError("argv must not be empty")
        return cls(executable=argv[0], args=tuple(argv[1:]), cwd=cwd, env=env)

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]


@dataclass
class ChildProcess:
    """A spawned, fully wired child.

    Owns the pipe ends until each is handed to a task or to the caller.

    Attributes:
        process: OS process handle
        stdin: Write-end of the stdin pipe (if an input source was given)
        stdout: Read-end of the stdout pipe (if stdout is piped)
        stderr: Read-end of the stderr pipe (if stderr is piped)
        stdout_wiring: Resolved stdout wiring
        stderr_wiring: Resolved stderr wiring
    """

    process: subprocess.Popen
    stdin: IO[bytes] | None = None
    stdout: IO[bytes] | None = None
    stderr: IO[bytes] | None = None
    stdout_wiring: StreamWiring = field(default_factory=StreamWiring)
    stderr_wiring: StreamWiring = field(default_factory=StreamWiring)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def label(self) -> str:
        return f"pid={self.process.pid}"


@dataclass
class ProcessLauncher:
    """Starts child processes and wires their streams and background tasks.

    Example:
        launcher = ProcessLauncher()
        stream = launcher.run_reader(
            output_config(stderr=DISCARD),
            open("unsorted.txt", "rb"),
            ProcessSpec("sort"),
        )
        data = stream.read()
        stream.wait()
    """

    chunk_size: int = field(default_factory=lambda: get_config().chunk_size)

    def launch(
        self,
        spec: ProcessSpec,
        *,
        has_stdin: bool,
        output: OutputConfig,
        pipe_stdout: bool = False,
    ) -> ChildProcess:
        """Start the OS process with all streams wired.

        Args:
            spec: Process specification
            has_stdin: Allocate a stdin pipe (otherwise stdin is inherited)
            output: Policies for stdout and stderr
            pipe_stdout: Always pipe stdout to the caller (reader shape);
                the stdout policy is then not used

        Returns:
            The running, fully wired child

        Raises:
            SpawnFailedError: If wiring fails or the process cannot start
        """
        argv = spec.argv
        try:
            stdout_wiring = (
                StreamWiring(popen_arg=subprocess.PIPE)
                if pipe_stdout
                else output.stdout.wiring("stdout")
            )
            stderr_wiring = output.stderr.wiring("stderr")
        except WiringError as e:
            logger.debug(f"Stream wiring failed for {argv[0]}: {e}")
            raise SpawnFailedError(argv, e, message=str(e)) from e

        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE if has_stdin else None,
                stdout=stdout_wiring.popen_arg,
                stderr=stderr_wiring.popen_arg,
                cwd=spec.cwd,
                env=dict(spec.env) if spec.env is not None else None,
                bufsize=0,
            )
        except (OSError, ValueError) as e:
            logger.debug(f"Spawn failed for {argv[0]}: {e}")
            raise SpawnFailedError(argv, e) from e

        logger.debug(
            f"Started subprocess pid={process.pid} "
            f"argv={argv[0]} cwd={spec.cwd}"
        )

        return ChildProcess(
            process=process,
            stdin=process.stdin,
            stdout=process.stdout,
            stderr=process.stderr,
            stdout_wiring=stdout_wiring,
            stderr_wiring=stderr_wiring,
        )

    def run_consumer(
        self,
        output: OutputConfig,
        input_source: InputSource | None,
        spec: ProcessSpec,
    ) -> ExitOutcome:
        """Run a process as a consumer of ``input_source``.

        Feeds the source to the child's stdin on a background task, blocks
        the calling thread until the child terminates, and returns the first
        outcome reported. stdout is handled purely by ``output.stdout``.

        Raises:
            SpawnFailedError: If the process could not be started
            TypeError: If ``input_source`` is not a byte source
        """
        if input_source is not None:
            check_input_source(input_source)

        child = self.launch(spec, has_stdin=input_source is not None, output=output)
        channel = CompletionChannel(label=child.label)

        pumps = self._start_pumps(child, channel)
        if input_source is not None:
            self._start_feeder(child, channel, input_source)

        # 在调用线程上等待，但仍通过同一通道报告，以保证先到的失败优先
        run_guarded(
            channel,
            f"exit-waiter-{child.pid}",
            make_exit_waiter(child.process, pumps, label=child.label),
        )
        return ExitFuture(channel).outcome()

    def run_reader(
        self,
        output: OutputConfig,
        input_source: InputSource | None,
        spec: ProcessSpec,
    ) -> ChildStream:
        """Run a process and return its stdout as a ChildStream.

        Returns as soon as the process is spawned. If ``input_source`` is given
        it is fed to stdin on a background task; the exit status is observed on
        another. Failures from either, including a nonzero exit code, surface
        through ``ChildStream.wait()``.

        Raises:
            SpawnFailedError: If the process could not be started
            TypeError: If ``input_source`` is not a byte source
        """
        if input_source is not None:
            check_input_source(input_source)
        if output.stdout != INHERIT:
            logger.warning(
                f"stdout policy {output.stdout!r} ignored: reader mode always pipes stdout"
            )

        child = self.launch(
            spec,
            has_stdin=input_source is not None,
            output=output,
            pipe_stdout=True,
        )
        if child.stdout is None:
            raise RuntimeError(f"[{child.label}] stdout pipe missing after launch")
        stdout = io.BufferedReader(child.stdout, buffer_size=self.chunk_size)
        channel = CompletionChannel(label=child.label)

        pumps = self._start_pumps(child, channel)
        if input_source is not None:
            self._start_feeder(child, channel, input_source)

        spawn_guarded(
            channel,
            f"exit-waiter-{child.pid}",
            make_exit_waiter(child.process, pumps, label=child.label),
        )

        return ChildStream(stdout, ExitFuture(channel), pid=child.pid)

    def _start_feeder(
        self,
        child: ChildProcess,
        channel: CompletionChannel,
        input_source: InputSource,
    ) -> None:
        stdin, child.stdin = child.stdin, None
        if stdin is None:
            raise RuntimeError(f"[{child.label}] stdin pipe missing after launch")
        spawn_guarded(
            channel,
            f"stdin-feeder-{child.pid}",
            make_stdin_feeder(input_source, stdin, self.chunk_size, label=child.label),
        )

    def _start_pumps(
        self,
        child: ChildProcess,
        channel: CompletionChannel,
    ) -> list[threading.Thread]:
        """Start post-spawn handlers for piped output streams.

        Note: these start after the process is running. If a thread cannot be
        started the channel receives an internal fault, but the child itself
        keeps running; it is not killed.
        """
        pumps: list[threading.Thread] = []
        for stream in ("stdout", "stderr"):
            wiring: StreamWiring = getattr(child, f"{stream}_wiring")
            if wiring.pump == PumpMode.NONE:
                continue
            pipe = getattr(child, stream)
            setattr(child, stream, None)

            body: Any
            if wiring.pump == PumpMode.COPY:
                body = make_output_copier(pipe, wiring.sink, self.chunk_size, stream=stream, label=child.label)
                name = f"{stream}-copier-{child.pid}"
            else:
                body = make_output_rejecter(pipe, self.chunk_size, stream=stream, label=child.label)
                name = f"{stream}-monitor-{child.pid}"

            thread = spawn_guarded(channel, name, body)
            if thread is not None:
                pumps.append(thread)
        return pumps


# Convenience functions for simple use cases
def run_consumer(
    output: OutputConfig,
    input_source: InputSource | None,
    spec: ProcessSpec,
) -> ExitOutcome:
    """Feed ``input_source`` to a process and wait for it; see ProcessLauncher.run_consumer."""
    return ProcessLauncher().run_consumer(output, input_source, spec)


def run_reader(
    output: OutputConfig,
    input_source: InputSource | None,
    spec: ProcessSpec,
) -> ChildStream:
    """Start a process and read its stdout; see ProcessLauncher.run_reader."""
    return ProcessLauncher().run_reader(output, input_source, spec)
