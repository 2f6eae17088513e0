"""Async adapters for event-loop callers.

child-stream runtime module v0.1.0

The core is thread based. These helpers run the blocking calls on an anyio
worker thread so asyncio/trio code can await them without stalling its loop.
Cancelling the awaiting task does not cancel the child: the worker thread
keeps waiting until the outcome arrives.
"""

from __future__ import annotations

import functools

import anyio.to_thread

from .future import ChildStream
from .outcome import ExitOutcome
from .policy import OutputConfig
from .process_runner import ProcessLauncher, ProcessSpec
from .tasks import InputSource

__all__ = [
    "wait_async",
    "outcome_async",
    "read_all_async",
    "run_consumer_async",
]


async def wait_async(stream: ChildStream) -> int:
    """Await ``stream.wait()``."""
    return await anyio.to_thread.run_sync(stream.wait)


async def outcome_async(stream: ChildStream) -> ExitOutcome:
    """Await ``stream.outcome()``."""
    return await anyio.to_thread.run_sync(stream.outcome)


async def read_all_async(stream: ChildStream) -> bytes:
    """Read the child's stdout to end-of-stream without blocking the loop."""
    return await anyio.to_thread.run_sync(stream.read)


async def run_consumer_async(
    output: OutputConfig,
    input_source: InputSource | None,
    spec: ProcessSpec,
    *,
    launcher: ProcessLauncher | None = None,
) -> ExitOutcome:
    """Await ``ProcessLauncher.run_consumer()``.

    Raises:
        SpawnFailedError: If the process could not be started
    """
    launcher = launcher or ProcessLauncher()
    return await anyio.to_thread.run_sync(
        functools.partial(launcher.run_consumer, output, input_source, spec)
    )
