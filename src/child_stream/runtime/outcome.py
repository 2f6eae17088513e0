"""Structured exit outcomes.

child-stream runtime module v0.1.0

Every background task reports at most one terminal ExitOutcome through the
completion channel. The variants form a closed set discriminated by ``kind``:

- success: process exited with code 0
- failure: nonzero exit code, or a status that cannot be decoded to a code
- spawn_failed: process could not start (normally raised synchronously)
- stdin_failed: reading the input source or writing the child's stdin failed
- wait_failed: the OS-level wait call failed
- internal_fault: a background task raised and the fault barrier caught it
"""

from __future__ import annotations

import signal as _signal
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..errors import (
    ChildStreamError,
    ExitStatusError,
    InternalFaultError,
    SpawnFailedError,
    StdinFailedError,
    WaitFailedError,
)

__all__ = [
    "OutcomeKind",
    "ExitOutcomeBase",
    "Success",
    "Failure",
    "SpawnFailed",
    "StdinFailed",
    "WaitFailed",
    "InternalFault",
    "ExitOutcome",
    "outcome_from_returncode",
    "parse_outcome",
]


class OutcomeKind(str, Enum):
    """Outcome discriminator."""

    SUCCESS = "success"
    FAILURE = "failure"
    SPAWN_FAILED = "spawn_failed"
    STDIN_FAILED = "stdin_failed"
    WAIT_FAILED = "wait_failed"
    INTERNAL_FAULT = "internal_fault"


class ExitOutcomeBase(BaseModel):
    """Base class of all outcome variants.

    Attributes:
        kind: Variant discriminator
        cause: Underlying exception, if any (never serialized)
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
    )

    kind: OutcomeKind
    cause: BaseException | None = Field(default=None, exclude=True, repr=False)

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    def to_error(self) -> ChildStreamError | None:
        """Build the exception reported by ``ExitFuture.wait()``.

        Returns:
            None for a successful outcome, otherwise the matching exception
        """
        return None


class Success(ExitOutcomeBase):
    """Process exited cleanly."""

    kind: Literal[OutcomeKind.SUCCESS] = OutcomeKind.SUCCESS
    code: int = 0


class Failure(ExitOutcomeBase):
    """Process ran but did not exit cleanly.

    Attributes:
        code: Exit code, None when terminated by a signal or undecodable
        signal: Terminating signal number (POSIX only)
    """

    kind: Literal[OutcomeKind.FAILURE] = OutcomeKind.FAILURE
    code: int | None = None
    signal: int | None = None

    def to_error(self) -> ChildStreamError:
        return ExitStatusError(self.code, signal=self.signal, outcome=self)


class SpawnFailed(ExitOutcomeBase):
    """Process could not be started."""

    kind: Literal[OutcomeKind.SPAWN_FAILED] = OutcomeKind.SPAWN_FAILED
    argv: list[str] = Field(default_factory=list)
    message: str = ""
    errno: int | None = None

    def to_error(self) -> ChildStreamError:
        err = SpawnFailedError(list(self.argv), self.cause, message=self.message)
        err.outcome = self
        return err


class StdinFailed(ExitOutcomeBase):
    """Feeding the child's stdin failed."""

    kind: Literal[OutcomeKind.STDIN_FAILED] = OutcomeKind.STDIN_FAILED
    message: str = ""
    errno: int | None = None

    def to_error(self) -> ChildStreamError:
        return StdinFailedError(self.message, errno=self.errno, outcome=self)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "StdinFailed":
        return cls(message=str(exc) or type(exc).__name__, errno=getattr(exc, "errno", None), cause=exc)


class WaitFailed(ExitOutcomeBase):
    """Waiting for the child failed at the OS level."""

    kind: Literal[OutcomeKind.WAIT_FAILED] = OutcomeKind.WAIT_FAILED
    message: str = ""
    errno: int | None = None

    def to_error(self) -> ChildStreamError:
        return WaitFailedError(self.message, errno=self.errno, outcome=self)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "WaitFailed":
        return cls(message=str(exc) or type(exc).__name__, errno=getattr(exc, "errno", None), cause=exc)


class InternalFault(ExitOutcomeBase):
    """A background task faulted; the barrier converted it to an outcome."""

    kind: Literal[OutcomeKind.INTERNAL_FAULT] = OutcomeKind.INTERNAL_FAULT
    message: str = ""
    task: str = ""

    def to_error(self) -> ChildStreamError:
        return InternalFaultError(self.message, task=self.task, outcome=self)

    @classmethod
    def from_exception(cls, exc: BaseException, task: str = "") -> "InternalFault":
        return cls(message=f"{type(exc).__name__}: {exc}", task=task, cause=exc)


# 统一联合类型
ExitOutcome = Annotated[
    Success | Failure | SpawnFailed | StdinFailed | WaitFailed | InternalFault,
    Field(discriminator="kind"),
]

_outcome_adapter: TypeAdapter[ExitOutcome] = TypeAdapter(ExitOutcome)


def parse_outcome(data: dict[str, Any]) -> ExitOutcome:
    """Rebuild an outcome from its ``model_dump()`` form."""
    return _outcome_adapter.validate_python(data)


def outcome_from_returncode(returncode: int | None) -> ExitOutcome:
    """Translate ``Popen.returncode`` into an outcome.

    POSIX reports termination by signal N as ``-N``; such a status has no exit
    code and yields ``Failure(code=None, signal=N)``.
    """
    if returncode is None:
        return Failure()
    if returncode == 0:
        return Success(code=0)
    if returncode < 0:
        signum = -returncode
        try:
            _signal.Signals(signum)
        except ValueError:
            return Failure()
        return Failure(signal=signum)
    return Failure(code=returncode)
