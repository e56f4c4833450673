"""Tests for logging setup and the console handler."""
import io
import logging

import pytest

from core.logging import logger as log_module
from core.logging.logger import SuppressingStreamHandler, setup_logging


def _record(name, level, msg):
    return logging.LogRecord(name, level, __file__, 1, msg, args=None, exc_info=None)


def test_repeated_lines_collapsed():
    """Test consecutive INFO lines from one logger become a summary line."""
    stream = io.StringIO()
    handler = SuppressingStreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(name)s %(message)s"))

    for i in range(4):
        handler.emit(_record("engine.prefetch_worker", logging.INFO, f"line {i}"))
    handler.emit(_record("engine.image_prefetcher", logging.INFO, "other"))

    lines = stream.getvalue().splitlines()
    assert lines == [
        "engine.prefetch_worker line 0",
        "engine.prefetch_worker [3 Suppressed: CHECK LOG]",
        "engine.image_prefetcher other",
    ]


def test_warnings_never_suppressed():
    stream = io.StringIO()
    handler = SuppressingStreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(message)s"))

    for i in range(3):
        handler.emit(_record("engine.prefetch_worker", logging.WARNING, f"warn {i}"))

    assert stream.getvalue().splitlines() == ["warn 0", "warn 1", "warn 2"]


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    base_dir = log_module._BASE_DIR
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    log_module._VERBOSE = False
    log_module._BASE_DIR = base_dir


def test_setup_logging_writes_file(tmp_path, restore_root_logger):
    log_dir = tmp_path / "logs"

    setup_logging(debug=False, verbose=True, log_dir=log_dir)
    logging.getLogger("engine.test").info("hello from test")

    assert log_module.is_verbose_logging() is True
    assert log_module.get_log_dir() == log_dir
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "hello from test" in (log_dir / log_module.LOG_FILE_NAME).read_text(encoding="utf-8")
