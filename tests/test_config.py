"""Config 模块测试。

测试 CHILD_STREAM_* 环境变量解析和配置管理。
"""

from __future__ import annotations

import os
from unittest import mock

from child_stream.config import (
    DEFAULT_CHUNK_SIZE,
    MAX_CHUNK_SIZE,
    Config,
    get_config,
    load_config,
    reload_config,
)
from child_stream.runtime.process_runner import ProcessLauncher


class TestChunkSize:
    """测试块大小解析。"""

    def test_default(self):
        """未设置时使用默认值。"""
        env = {k: v for k, v in os.environ.items() if k != "CHILD_STREAM_CHUNK_SIZE"}
        with mock.patch.dict(os.environ, env, clear=True):
            assert load_config().chunk_size == DEFAULT_CHUNK_SIZE

    def test_explicit_value(self):
        with mock.patch.dict(os.environ, {"CHILD_STREAM_CHUNK_SIZE": "4096"}):
            assert load_config().chunk_size == 4096

    def test_invalid_value_falls_back(self):
        """无效值使用默认值。"""
        with mock.patch.dict(os.environ, {"CHILD_STREAM_CHUNK_SIZE": "lots"}):
            assert load_config().chunk_size == DEFAULT_CHUNK_SIZE

    def test_clamped(self):
        """超出范围的值被限制。"""
        with mock.patch.dict(os.environ, {"CHILD_STREAM_CHUNK_SIZE": "0"}):
            assert load_config().chunk_size == 1
        with mock.patch.dict(os.environ, {"CHILD_STREAM_CHUNK_SIZE": str(10**12)}):
            assert load_config().chunk_size == MAX_CHUNK_SIZE

    def test_launcher_uses_config(self):
        """ProcessLauncher 默认从全局配置读取块大小。"""
        with mock.patch.dict(os.environ, {"CHILD_STREAM_CHUNK_SIZE": "512"}):
            reload_config()
            assert ProcessLauncher().chunk_size == 512


class TestLogSettings:
    """测试日志相关配置。"""

    def test_log_debug_off_by_default(self):
        config = load_config()
        assert config.log_debug is False
        assert config.log_file is None

    def test_log_debug_creates_file_path(self):
        with mock.patch.dict(os.environ, {"CHILD_STREAM_LOG_DEBUG": "yes"}):
            config = load_config()
        assert config.log_debug is True
        assert config.log_file is not None
        assert "child-stream" in config.log_file
        assert config.log_file.endswith(".log")

    def test_late_outcomes_default_true(self):
        assert load_config().log_late_outcomes is True

    def test_late_outcomes_disabled(self):
        for value in ("false", "0", "no", "off"):
            with mock.patch.dict(os.environ, {"CHILD_STREAM_LOG_LATE_OUTCOMES": value}):
                assert load_config().log_late_outcomes is False


class TestGlobalConfig:
    """测试全局配置实例。"""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reload_config_replaces_instance(self):
        first = get_config()
        second = reload_config()
        assert first is not second
        assert get_config() is second

    def test_repr(self):
        text = repr(Config(chunk_size=10))
        assert "chunk_size=10" in text
        assert "log_late_outcomes=True" in text
