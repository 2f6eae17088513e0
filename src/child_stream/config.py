"""child-stream 环境变量配置管理。

环境变量:
    CHILD_STREAM_CHUNK_SIZE: stdin 写入与输出转发的块大小（字节）
        - 默认 65536
        - 限制在 1 字节 - 16 MiB 范围，无效值使用默认值

    CHILD_STREAM_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)

    CHILD_STREAM_LOG_LATE_OUTCOMES: 迟到结果的日志级别
        - true/1/yes = WARNING (默认)
        - false/0/no = DEBUG
        迟到结果指第一个结果之后其他后台任务报告的结果，它们永远不会交给调用方。
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config", "DEFAULT_CHUNK_SIZE"]

DEFAULT_CHUNK_SIZE = 64 * 1024
MAX_CHUNK_SIZE = 16 * 1024 * 1024


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_chunk_size(value: str | None) -> int:
    """解析块大小环境变量。"""
    if not value:
        return DEFAULT_CHUNK_SIZE
    try:
        size = int(value)
    except ValueError:
        return DEFAULT_CHUNK_SIZE
    return max(1, min(size, MAX_CHUNK_SIZE))


@dataclass
class Config:
    """child-stream 配置。

    Attributes:
        chunk_size: 每次读写的字节数
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
        log_late_outcomes: 迟到结果是否以 WARNING 级别记录
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    log_debug: bool = False
    log_file: str | None = None
    log_late_outcomes: bool = True

    def __repr__(self) -> str:
        return (
            f"Config(chunk_size={self.chunk_size}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"log_late_outcomes={self.log_late_outcomes})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "child-stream"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"child_stream_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("CHILD_STREAM_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        chunk_size=_parse_chunk_size(os.environ.get("CHILD_STREAM_CHUNK_SIZE")),
        log_debug=log_debug,
        log_file=log_file,
        log_late_outcomes=_parse_bool(
            os.environ.get("CHILD_STREAM_LOG_LATE_OUTCOMES"), default=True
        ),
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
