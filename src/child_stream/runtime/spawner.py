"""Completion channel and fault-barrier task spawner.

child-stream runtime module v0.1.0

Background tasks (stdin feeder, exit waiter, output pumps) report into one
CompletionChannel per process. Rules:

- every task registered on the channel reports exactly once, even if its body
  raises (the barrier converts the exception into an InternalFault)
- a report of None means "finished, nothing to say" and never resolves the
  channel; the feeder and pumps use it on success so that only the waiter
  can report a clean exit. The waiter always reports a terminal outcome.
- the first terminal outcome is authoritative; later ones are logged and dropped
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable

from ..config import get_config
from .outcome import ExitOutcome, InternalFault

__all__ = [
    "CompletionChannel",
    "TaskBody",
    "spawn_guarded",
    "run_guarded",
]

logger = logging.getLogger(__name__)

# 任务体：返回终态结果，或 None 表示无需报告结果
TaskBody = Callable[[], "ExitOutcome | None"]


class CompletionChannel:
    """Single-resolution delivery path from background tasks to an ExitFuture.

    Attributes:
        label: Human-readable owner (used in log messages)
    """

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._queue: queue.Queue[ExitOutcome] = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._resolved: ExitOutcome | None = None
        self._pending: set[str] = set()
        self._late: list[ExitOutcome] = []

    @property
    def resolved(self) -> bool:
        """Whether an authoritative outcome has been delivered."""
        with self._lock:
            return self._resolved is not None

    @property
    def pending_tasks(self) -> frozenset[str]:
        """Names of registered tasks that have not reported yet."""
        with self._lock:
            return frozenset(self._pending)

    @property
    def late_outcomes(self) -> list[ExitOutcome]:
        """Outcomes that arrived after the authoritative one."""
        with self._lock:
            return list(self._late)

    def register(self, task: str) -> None:
        """Announce that ``task`` will report once."""
        with self._lock:
            if task in self._pending:
                raise ValueError(f"task {task!r} already registered on {self.label}")
            self._pending.add(task)

    def report(self, task: str, outcome: ExitOutcome | None) -> bool:
        """Record the single report of ``task``.

        Args:
            task: Registered task name
            outcome: Terminal outcome, or None for "finished without outcome"

        Returns:
            True if this report resolved the channel
        """
        with self._lock:
            self._pending.discard(task)

            if outcome is None:
                logger.debug(f"[{self.label}] task {task} finished")
                return False

            if self._resolved is not None:
                self._late.append(outcome)
                level = logging.WARNING if get_config().log_late_outcomes else logging.DEBUG
                logger.log(
                    level,
                    f"[{self.label}] dropping late outcome from {task}: {outcome.kind.value} "
                    f"(already resolved with {self._resolved.kind.value})",
                )
                return False

            self._resolved = outcome
            self._queue.put_nowait(outcome)

        logger.debug(f"[{self.label}] resolved by {task}: {outcome!r}")
        return True

    def receive(self) -> ExitOutcome:
        """Block until the authoritative outcome arrives."""
        return self._queue.get()


def _guarded_call(name: str, body: TaskBody) -> "ExitOutcome | None":
    try:
        return body()
    except Exception as e:
        logger.error(f"Task {name} raised, reporting internal fault", exc_info=True)
        return InternalFault.from_exception(e, task=name)


def run_guarded(channel: CompletionChannel, name: str, body: TaskBody) -> None:
    """Run ``body`` on the calling thread behind the fault barrier.

    Exactly one report reaches ``channel`` regardless of how ``body`` ends.
    """
    channel.register(name)
    _run_reporting(channel, name, body)


def spawn_guarded(
    channel: CompletionChannel,
    name: str,
    body: TaskBody,
) -> threading.Thread | None:
    """Start ``body`` on a daemon thread behind the fault barrier.

    Args:
        channel: Channel the task reports into
        name: Task name (also the thread name)
        body: Unit of work

    Returns:
        The started thread, or None if the thread could not be started
        (the channel then already holds an internal fault for this task)
    """
    channel.register(name)
    thread = threading.Thread(
        target=_run_reporting,
        args=(channel, name, body),
        name=name,
        daemon=True,
    )
    try:
        thread.start()
    except RuntimeError as e:
        # 线程无法启动：仍然要产生一条消息
        logger.error(f"Failed to start task {name}: {e}")
        channel.report(name, InternalFault.from_exception(e, task=name))
        return None
    logger.debug(f"Started task {name}")
    return thread


def _run_reporting(channel: CompletionChannel, name: str, body: TaskBody) -> None:
    outcome: ExitOutcome | None = InternalFault(message="task exited abnormally", task=name)
    try:
        outcome = _guarded_call(name, body)
    finally:
        channel.report(name, outcome)
