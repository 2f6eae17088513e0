"""child-stream 异常类。

child-stream v0.1.0

Spawn 阶段的错误在调用处同步抛出；spawn 之后的错误只通过
ExitFuture.wait() 抛出，且只报告第一个到达的结果。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .runtime.outcome import ExitOutcome

__all__ = [
    "ChildStreamError",
    "SpawnFailedError",
    "StdinFailedError",
    "WaitFailedError",
    "ExitStatusError",
    "InternalFaultError",
    "AlreadyConsumedError",
]


class ChildStreamError(Exception):
    """child-stream 基础异常。

    Attributes:
        outcome: 产生该异常的 ExitOutcome（spawn 前的错误为 None）
    """

    outcome: "ExitOutcome | None" = None


class SpawnFailedError(ChildStreamError):
    """进程无法启动，或 spawn 前的流配置失败。

    Attributes:
        argv: 尝试启动的命令行
        cause: 底层 OS 异常
    """

    def __init__(self, argv: list[str], cause: BaseException | None = None, message: str = "") -> None:
        self.argv = argv
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "unknown error")
        super().__init__(f"failed to spawn {argv[0] if argv else '<empty>'}: {detail}")

    @property
    def errno(self) -> int | None:
        return getattr(self.cause, "errno", None)


class StdinFailedError(ChildStreamError):
    """从输入源读取或写入子进程 stdin 失败。"""

    def __init__(self, message: str, errno: int | None = None, outcome: Any = None) -> None:
        self.message = message
        self.errno = errno
        self.outcome = outcome
        super().__init__(f"stdin feed failed: {message}")


class WaitFailedError(ChildStreamError):
    """等待子进程退出的 OS 调用失败。"""

    def __init__(self, message: str, errno: int | None = None, outcome: Any = None) -> None:
        self.message = message
        self.errno = errno
        self.outcome = outcome
        super().__init__(f"wait failed: {message}")


class ExitStatusError(ChildStreamError):
    """子进程以非零状态退出，或退出状态无法解码为退出码。

    Attributes:
        code: 退出码（被信号终止时为 None）
        signal: 终止信号编号（仅 POSIX）
    """

    def __init__(self, code: int | None, signal: int | None = None, outcome: Any = None) -> None:
        self.code = code
        self.signal = signal
        self.outcome = outcome
        if code is not None:
            detail = f"exit code {code}"
        elif signal is not None:
            detail = f"terminated by signal {signal}"
        else:
            detail = "undecodable exit status"
        super().__init__(f"process failed: {detail}")


class InternalFaultError(ChildStreamError):
    """后台任务内部出现未预期的异常，被故障屏障拦截。"""

    def __init__(self, message: str, task: str = "", outcome: Any = None) -> None:
        self.message = message
        self.task = task
        self.outcome = outcome
        prefix = f"[{task}] " if task else ""
        super().__init__(f"internal fault: {prefix}{message}")


class AlreadyConsumedError(ChildStreamError):
    """ExitFuture 已被消费，再次调用 wait() 属于调用方误用。"""

    def __init__(self) -> None:
        super().__init__("exit result already consumed")
