"""Runtime module for child process streaming.

This module launches external programs with declarative stream wiring,
feeds their stdin and observes their exit on background threads, and
reports the first outcome through a single-resolution future.
"""

from __future__ import annotations

from .future import ChildStream, ExitFuture, FutureState
from .outcome import (
    ExitOutcome,
    Failure,
    InternalFault,
    OutcomeKind,
    SpawnFailed,
    StdinFailed,
    Success,
    WaitFailed,
    outcome_from_returncode,
    parse_outcome,
)
from .policy import (
    DISCARD,
    FAIL_ON_OUTPUT,
    INHERIT,
    Discard,
    FailOnOutput,
    Inherit,
    OutputConfig,
    OutputPolicy,
    RedirectToHandle,
    output_config,
)
from .process_runner import (
    ChildProcess,
    ProcessLauncher,
    ProcessSpec,
    run_consumer,
    run_reader,
)
from .spawner import CompletionChannel, run_guarded, spawn_guarded

__all__ = [
    "ChildStream",
    "ExitFuture",
    "FutureState",
    "ExitOutcome",
    "Success",
    "Failure",
    "SpawnFailed",
    "StdinFailed",
    "WaitFailed",
    "InternalFault",
    "OutcomeKind",
    "outcome_from_returncode",
    "parse_outcome",
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
    "ChildProcess",
    "ProcessLauncher",
    "ProcessSpec",
    "run_consumer",
    "run_reader",
    "CompletionChannel",
    "run_guarded",
    "spawn_guarded",
]
