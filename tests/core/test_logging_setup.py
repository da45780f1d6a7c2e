"""
Tests for logging configuration and structured records.
"""

import logging
from pathlib import Path

import pytest

from tokenscope.core.config import LoggingConfig
from tokenscope.core.logging import (
    StructuredFormatter,
    build_logging_config,
    get_logger,
    log_structured,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    yield
    for logger in (logging.getLogger("tokenscope"), logging.getLogger()):
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler):
                handler.close()
                logger.removeHandler(handler)


def _flush() -> None:
    for handler in logging.getLogger("tokenscope").handlers:
        handler.flush()


class TestBuildConfig:
    def test_console_only(self):
        config = build_logging_config("INFO", None, LoggingConfig())
        assert set(config["handlers"]) == {"console"}
        assert config["loggers"]["tokenscope"]["handlers"] == ["console"]
        assert not config["loggers"]["tokenscope"]["propagate"]

    def test_rotating_file(self, temp_dir: Path):
        settings = LoggingConfig(max_file_size=2048, backup_count=2)
        config = build_logging_config("DEBUG", temp_dir / "a.log", settings)
        file_handler = config["handlers"]["file"]
        assert file_handler["class"] == "logging.handlers.RotatingFileHandler"
        assert file_handler["maxBytes"] == 2048
        assert file_handler["backupCount"] == 2
        assert config["loggers"]["tokenscope"]["handlers"] == ["console", "file"]

    def test_plain_formatters(self):
        config = build_logging_config("INFO", None, LoggingConfig(), structured=False)
        assert all("()" not in f for f in config["formatters"].values())


def test_file_handler_receives_package_logs(temp_dir: Path, restore_logging):
    log_file = temp_dir / "logs" / "tokenscope.log"
    setup_logging(log_level="debug", log_file=log_file)
    get_logger("tokenscope.sequencer.analyzer").debug("analysis started")
    _flush()
    assert "analysis started" in log_file.read_text()


def test_level_filters_records(temp_dir: Path, restore_logging):
    log_file = temp_dir / "warn.log"
    setup_logging(log_level="WARNING", log_file=log_file)
    logger = get_logger("tokenscope.collector")
    logger.info("hidden")
    logger.warning("shown")
    _flush()
    contents = log_file.read_text()
    assert "shown" in contents
    assert "hidden" not in contents


def test_log_structured_writes_context(temp_dir: Path, restore_logging):
    log_file = temp_dir / "structured.log"
    setup_logging(log_level="DEBUG", log_file=log_file)
    log_structured(get_logger("tokenscope.test"), logging.INFO, "Analysis complete", samples=12)
    _flush()
    assert "Analysis complete | samples=12" in log_file.read_text()


def test_log_structured_respects_level(restore_logging):
    setup_logging(log_level="ERROR")
    logger = get_logger("tokenscope.test")
    records = []

    class Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    collector = Collect()
    logger.addHandler(collector)
    try:
        log_structured(logger, logging.DEBUG, "suppressed", value=1)
        log_structured(logger, logging.ERROR, "kept", value=2)
    finally:
        logger.removeHandler(collector)
    assert [r.getMessage() for r in records] == ["kept"]
    assert records[0].structured_data == {"value": 2}


class TestStructuredFormatter:
    def test_sorted_pairs(self):
        formatter = StructuredFormatter("%(message)s")
        record = logging.LogRecord("tokenscope", logging.INFO, "", 0, "done", (), None)
        record.structured_data = {"tokens": 3, "rating": "GOOD"}
        assert formatter.format(record) == "done | rating=GOOD tokens=3"

    def test_record_is_not_modified(self):
        formatter = StructuredFormatter("%(message)s")
        record = logging.LogRecord("tokenscope", logging.INFO, "", 0, "done", (), None)
        record.structured_data = {"tokens": 3}
        formatter.format(record)
        assert formatter.format(record) == "done | tokens=3"
        assert record.msg == "done"

    def test_plain_record(self):
        formatter = StructuredFormatter("%(message)s")
        record = logging.LogRecord("tokenscope", logging.INFO, "", 0, "done", (), None)
        assert formatter.format(record) == "done"
