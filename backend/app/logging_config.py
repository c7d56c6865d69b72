from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from backend.app.config import AppSettings

LOG_FILE_NAME = "video-info.log"
TELEMETRY_LOG_FILE_NAME = "video-info-telemetry.log"
SERVICE_NAME = "video-info"
# Console lines lead with these keys; anything else bound follows in sorted order.
_CONSOLE_KEY_ORDER = ["timestamp", "level", "logger", "event", "video_id", "outcome"]
# `extra=` keys the lookup service attaches to stdlib records.
_LOOKUP_EXTRA_KEYS = ("outcome", "status_code")


def configure_application_logging(settings: AppSettings) -> Path:
    """
    Route the `video_info` logger tree through structlog.

    Console output is key=value lines at `settings.log_level`; the log file
    gets every DEBUG record as one JSON object per line. Telemetry events go
    to their own JSON file and never reach the console.
    """
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    telemetry_log_file = log_dir / TELEMETRY_LOG_FILE_NAME

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setLevel(_resolve_log_level(settings.log_level))
    console_handler.setFormatter(
        _formatter(
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(
                key_order=_CONSOLE_KEY_ORDER,
                drop_missing=True,
                sort_keys=True,
            )
        )
    )
    _install_handlers(
        logging.getLogger("video_info"),
        level=logging.DEBUG,
        handlers=[console_handler, _json_file_handler(log_file, logging.DEBUG)],
    )
    _install_handlers(
        logging.getLogger("video_info.telemetry"),
        level=logging.INFO,
        handlers=[_json_file_handler(telemetry_log_file, logging.INFO)],
    )

    logging.getLogger("video_info").info(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        settings.log_level.upper(),
        log_file,
        telemetry_log_file,
    )
    return log_file


def _resolve_log_level(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _install_handlers(
    logger: logging.Logger,
    *,
    level: int,
    handlers: list[logging.Handler],
) -> None:
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def _json_file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        _formatter(
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        )
    )
    return handler


def _formatter(*renderers: Processor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(allow=_LOOKUP_EXTRA_KEYS),
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _add_lookup_context,
            *renderers,
        ],
    )


def _add_lookup_context(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    # Lookups bind `video_id` once the path is validated; drop the empty binding.
    if event_dict.get("video_id") is None:
        event_dict.pop("video_id", None)
    return event_dict
