"""
tokenscope Logging Configuration

Console and rotating-file logging for the ``tokenscope`` logger tree, with
key=value context attached to analysis records.
"""

import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config import LoggingConfig, get_config


PACKAGE_LOGGER = "tokenscope"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class StructuredFormatter(logging.Formatter):
    """Appends a record's ``structured_data`` as sorted ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        data = getattr(record, "structured_data", None)
        if not data:
            return text
        context = " ".join(f"{key}={data[key]}" for key in sorted(data))
        return f"{text} | {context}"


def _formatter(fmt: str, structured: bool) -> Dict[str, Any]:
    formatter: Dict[str, Any] = {"format": fmt, "datefmt": DATE_FORMAT}
    if structured:
        formatter["()"] = StructuredFormatter
    return formatter


def build_logging_config(
    level: str,
    log_file: Optional[Path],
    settings: LoggingConfig,
    structured: bool = True,
) -> Dict[str, Any]:
    """
    Build the ``dictConfig`` mapping used by ``setup_logging``.

    The console handler writes to stderr so that reports printed by the CLI
    on stdout stay machine-readable.
    """
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "console",
            "stream": sys.stderr,
        }
    }
    if log_file is not None:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "file",
            "filename": str(log_file),
            "maxBytes": settings.max_file_size,
            "backupCount": settings.backup_count,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": _formatter(LOG_FORMAT, structured),
            "file": _formatter(FILE_LOG_FORMAT, structured),
        },
        "handlers": handlers,
        "loggers": {
            PACKAGE_LOGGER: {
                "level": level,
                "handlers": list(handlers),
                "propagate": False,
            },
        },
        "root": {"level": "WARNING", "handlers": list(handlers)},
    }


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    enable_structured: bool = True,
) -> None:
    """
    Configure logging for tokenscope.

    Args:
        log_level: Logging level; defaults to the configured level
        log_file: Rotating log file; defaults to the configured path, if any
        enable_structured: Render ``log_structured`` context on every handler
    """
    settings = get_config().logging
    level = (log_level or settings.level).upper()

    if log_file is None and settings.file_path:
        log_file = Path(settings.file_path)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(level, log_file, settings, structured=enable_structured)
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for a tokenscope module (pass ``__name__``)."""
    return logging.getLogger(name)


def log_structured(
    logger: logging.Logger, level: int, message: str, **structured_data: Any
) -> None:
    """
    Log ``message`` with key=value context.

    Args:
        logger: Logger instance
        level: Logging level
        message: Log message
        **structured_data: Context rendered by StructuredFormatter
    """
    if logger.isEnabledFor(level):
        logger.log(level, message, extra={"structured_data": structured_data}, stacklevel=2)
