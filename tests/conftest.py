"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 测试用子进程脚本
FAKE_CHILD = Path(__file__).parent / "fixtures" / "fake_child.py"

IS_WINDOWS = sys.platform == "win32"


@pytest.fixture
def fake_child():
    """构造运行 fake_child.py 的 ProcessSpec。"""
    from child_stream import ProcessSpec

    def make(*args: str) -> ProcessSpec:
        return ProcessSpec(sys.executable, (str(FAKE_CHILD), *args))

    return make


@pytest.fixture
def sort_exe() -> str:
    """系统 sort 命令（不存在则跳过）。"""
    exe = shutil.which("sort")
    if exe is None or IS_WINDOWS:
        pytest.skip("POSIX sort not available")
    return exe


@pytest.fixture
def gzip_exe() -> str:
    """系统 gzip 命令（不存在则跳过）。"""
    exe = shutil.which("gzip")
    if exe is None:
        pytest.skip("gzip not available")
    return exe


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch: pytest.MonkeyPatch):
    """每个测试使用干净的环境变量配置。"""
    from child_stream.config import reload_config

    for name in ("CHILD_STREAM_CHUNK_SIZE", "CHILD_STREAM_LOG_DEBUG", "CHILD_STREAM_LOG_LATE_OUTCOMES"):
        monkeypatch.delenv(name, raising=False)
    reload_config()
    yield
    monkeypatch.undo()
    reload_config()
