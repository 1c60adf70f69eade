from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from backend.videoinfo.config import AppSettings
from backend.videoinfo.telemetry import TELEMETRY_LOGGER_NAME

APP_LOGGER_NAME = "videoinfo"
LOG_FILE_NAME = "videoinfo.log"
TELEMETRY_LOG_FILE_NAME = "videoinfo-telemetry.log"
# httpx logs every provider request at INFO, including the YouTube API key in the query.
QUIET_LIBRARY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def configure_application_logging(settings: AppSettings) -> Path:
    """
    Route every ``videoinfo.*`` logger to the console and a JSON log file.

    Telemetry events get their own file so they can be shipped separately.
    Safe to call more than once; previous handlers are closed and replaced.
    """
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    telemetry_log_file = log_dir / TELEMETRY_LOG_FILE_NAME

    _configure_structlog()

    logger = _claim_logger(APP_LOGGER_NAME, level=logging.DEBUG)
    logger.addHandler(_build_console_handler(_resolve_log_level(settings.log_level)))
    logger.addHandler(_build_file_handler(log_file, level=logging.DEBUG, settings=settings))

    telemetry_logger = _claim_logger(TELEMETRY_LOGGER_NAME, level=logging.INFO)
    telemetry_logger.addHandler(
        _build_file_handler(telemetry_log_file, level=logging.INFO, settings=settings)
    )

    for library_logger in QUIET_LIBRARY_LOGGERS:
        logging.getLogger(library_logger).setLevel(logging.WARNING)

    logger.info(
        "logging configured console_level=%s path=%s telemetry_path=%s max_bytes=%s backups=%s",
        settings.log_level.upper(),
        log_file,
        telemetry_log_file,
        settings.log_file_max_bytes,
        settings.log_file_backup_count,
    )
    return log_file


def _resolve_log_level(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _claim_logger(name: str, *, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    return logger


def _build_console_handler(level: int) -> logging.Handler:
    stream = sys.stdout
    handler = logging.StreamHandler(stream=stream)
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_pre_chain(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=_stream_supports_color(stream)),
            ],
        )
    )
    return handler


def _build_file_handler(path: Path, *, level: int, settings: AppSettings) -> logging.Handler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.log_file_max_bytes,
        backupCount=settings.log_file_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_pre_chain(),
            processors=[
                _add_source_location,
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
        )
    )
    return handler


def _shared_pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _add_source_location(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError):
        return False
