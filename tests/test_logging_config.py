"""logging_config 模块测试。"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from child_stream.config import Config
from child_stream.logging_config import JsonSerializingFormatter, LOG_FORMAT, configure_logging
from child_stream.runtime.outcome import Failure


@pytest.fixture
def package_logger():
    """保存并恢复 child_stream logger 状态。"""
    logger = logging.getLogger("child_stream")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    for handler in list(logger.handlers):
        if handler not in saved[0]:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


class TestConfigureLogging:
    """测试 configure_logging()。"""

    def test_stderr_handler_by_default(self, package_logger):
        handler = configure_logging(Config())
        assert isinstance(handler, logging.StreamHandler)
        assert handler in package_logger.handlers
        assert package_logger.level == logging.INFO

    def test_debug_file_handler(self, package_logger, tmp_path: Path):
        log_file = tmp_path / "debug.log"
        handler = configure_logging(Config(log_debug=True, log_file=str(log_file)))
        assert isinstance(handler, logging.FileHandler)
        assert package_logger.level == logging.DEBUG

        logging.getLogger("child_stream.runtime.spawner").debug("hello %s", "file")
        handler.flush()
        assert "hello file" in log_file.read_text(encoding="utf-8")

    def test_repeated_calls_do_not_stack(self, package_logger):
        configure_logging(Config())
        configure_logging(Config())
        marked = [h for h in package_logger.handlers if getattr(h, "_child_stream_handler", False)]
        assert len(marked) == 1


class TestJsonSerializingFormatter:
    """测试日志参数序列化。"""

    def test_pydantic_model_argument(self):
        formatter = JsonSerializingFormatter(LOG_FORMAT)
        record = logging.LogRecord(
            "child_stream", logging.INFO, __file__, 1, "outcome=%s", (Failure(code=3),), None
        )
        text = formatter.format(record)
        assert '"kind": "failure"' in text
        assert '"code": 3' in text

    def test_plain_arguments_untouched(self):
        formatter = JsonSerializingFormatter("%(message)s")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "%s-%d", ("a", 1), None)
        assert formatter.format(record) == "a-1"
