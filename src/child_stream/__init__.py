"""child-stream - 以非阻塞方式驱动外部进程的标准流。

环境变量:
    CHILD_STREAM_CHUNK_SIZE: 读写块大小 (默认 65536)
    CHILD_STREAM_LOG_DEBUG: 日志输出到临时文件 (默认 false)
    CHILD_STREAM_LOG_LATE_OUTCOMES: 迟到结果以 WARNING 记录 (默认 true)

用法:
    from child_stream import ProcessSpec, output_config, run_reader

    stream = run_reader(output_config(), b"3\\n1\\n2\\n", ProcessSpec("sort"))
    print(stream.read())
    stream.wait()
"""

__version__ = "0.1.0"

from .errors import (
    AlreadyConsumedError,
    ChildStreamError,
    ExitStatusError,
    InternalFaultError,
    SpawnFailedError,
    StdinFailedError,
    WaitFailedError,
)
from .runtime import *  # noqa: F401,F403
from .runtime import __all__ as _runtime_all

__all__ = [
    "__version__",
    "ChildStreamError",
    "SpawnFailedError",
    "StdinFailedError",
    "WaitFailedError",
    "ExitStatusError",
    "InternalFaultError",
    "AlreadyConsumedError",
    *_runtime_all,
]
