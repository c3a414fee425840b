"""Structured logging configuration using structlog."""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "stockwatch"

# Library loggers that are chatty at INFO during scheduled cycles
NOISY_LOGGERS = ("apscheduler.executors", "apscheduler.scheduler", "aiohttp.access", "sqlalchemy.engine")

_SIZE_PATTERN = re.compile(r"^(\d+)\s*(B|KB|MB|GB)?$")
_SIZE_UNITS = {None: 1, "B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def _add_app_name(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("app", APP_NAME)
    return event_dict


def setup_logging(
    level: str = "INFO",
    format_type: str = "structured",
    file_enabled: bool = True,
    file_path: str = "data/stockwatch.log",
    max_file_size: str = "10MB",
    backup_count: int = 5,
) -> None:
    """
    Configure structlog on top of the standard library root logger.

    Safe to call more than once: the scheduler job threads and the API
    process share the same root logger, and an existing file handler for
    the same path is replaced rather than duplicated.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'structured' for JSON lines, 'plain' for console output
        file_enabled: Whether to also write to a rotating log file
        file_path: Path to the log file
        max_file_size: Rotation size such as 10MB or 512KB
        backup_count: Number of rotated files to keep
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger().setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_app_name,
        structlog.processors.TimeStamper(fmt="ISO", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "structured":
        # Keep CJK instrument names readable in the JSON lines
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if file_enabled:
        _attach_file_handler(Path(file_path), parse_file_size(max_file_size), backup_count, log_level)


def setup_logging_from_settings(settings: Optional[Any] = None) -> None:
    """Configure logging from the application settings object."""
    if settings is None:
        from .settings import get_settings

        settings = get_settings()

    setup_logging(
        level=settings.log_level,
        format_type=settings.log_format,
        file_enabled=settings.log_file_enabled,
        file_path=settings.log_file_path,
        max_file_size=settings.log_max_file_size,
        backup_count=settings.log_backup_count,
    )


def _attach_file_handler(
    log_file: Path, max_bytes: int, backup_count: int, log_level: int
) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()

    for handler in list(root.handlers):
        if isinstance(handler, logging.handlers.RotatingFileHandler) and Path(
            handler.baseFilename
        ) == log_file.resolve():
            root.removeHandler(handler)
            handler.close()

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(file_handler)


def parse_file_size(size_str: str) -> int:
    """
    Parse a size such as 10MB, 512KB or 1048576 into bytes.

    Raises:
        ValueError: If the size is not a whole number with an optional unit
    """
    match = _SIZE_PATTERN.match(size_str.strip().upper())
    if not match:
        raise ValueError(f"Invalid file size: {size_str!r}")
    amount, unit = match.groups()
    return int(amount) * _SIZE_UNITS[unit]


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, usually named after the calling module."""
    return structlog.get_logger(name)
