"""日志配置。

child-stream 作为库使用时只通过 ``logging.getLogger(__name__)`` 输出日志，
不会主动配置 handler。应用可以调用 configure_logging() 获得与
CHILD_STREAM_LOG_DEBUG 对应的默认输出：

- 默认模式：输出到 stderr，child_stream 命名空间为 INFO
- LOG_DEBUG 模式：输出到临时文件，child_stream 命名空间为 DEBUG
"""

from __future__ import annotations

import json
import logging
import sys

from .config import Config, get_config

__all__ = ["configure_logging", "JsonSerializingFormatter", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# 标记由本模块安装的 handler，重复调用时替换而不是叠加
_HANDLER_MARK = "_child_stream_handler"


class JsonSerializingFormatter(logging.Formatter):
    """尝试将日志参数中的对象 JSON 序列化（如 ExitOutcome）。"""

    def format(self, record: logging.LogRecord) -> str:
        if record.args and isinstance(record.args, tuple):
            new_args = []
            for arg in record.args:
                try:
                    if hasattr(arg, "model_dump"):
                        # Pydantic 模型
                        new_args.append(json.dumps(arg.model_dump(mode="json"), ensure_ascii=False))
                    elif isinstance(arg, dict):
                        new_args.append(json.dumps(arg, ensure_ascii=False, default=str))
                    else:
                        new_args.append(arg)
                except (TypeError, ValueError):
                    new_args.append(arg)
            record.args = tuple(new_args)
        return super().format(record)


def configure_logging(config: Config | None = None) -> logging.Handler:
    """配置 child_stream 命名空间的日志输出。

    Args:
        config: 配置（默认使用全局配置）

    Returns:
        安装的 handler
    """
    config = config or get_config()

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        handler: logging.Handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr
        handler = logging.StreamHandler(sys.stderr)
        log_level = logging.INFO

    handler.setFormatter(JsonSerializingFormatter(LOG_FORMAT))
    setattr(handler, _HANDLER_MARK, True)

    package_logger = logging.getLogger("child_stream")
    for existing in list(package_logger.handlers):
        if getattr(existing, _HANDLER_MARK, False):
            package_logger.removeHandler(existing)
            existing.close()

    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)
    # 不向 root 传播，避免与应用自己的 handler 重复输出
    package_logger.propagate = False

    return handler
