"""
Logging setup for Spark Sync.

structlog renders every record; stdlib logging routes them to stderr and,
when enabled in config/settings/logging.yaml, to a rotating JSONL file.

Records carry timestamp, level, logger, event, func_name and lineno. The
``source`` field (cli, sync, remote) is bound by the CLI or passed through
log_with_source by the channel and the HTTP store.

Usage:
    from modules.spark.core.logging import get_logger, setup_logging

    setup_logging(level="DEBUG", format_type="console")
    logger = get_logger(__name__)
    logger.info("Snapshot applied", extra={"count": 3})
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog
from structlog.typing import Processor

from modules.spark.core.config import find_project_root, get_app_config
from modules.spark.core.config_schema import FileHandlerSchema, LoggingSchema

_QUIET_LOGGERS = ("httpx", "httpcore")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
    ]


def _file_handler(file_config: FileHandlerSchema, formatter: logging.Formatter) -> logging.Handler:
    log_path = find_project_root() / file_config.path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=file_config.max_bytes,
        backupCount=file_config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    config: LoggingSchema | None = None,
) -> None:
    """
    Configure structlog and the root logger.

    Args:
        level: Log level name. Overrides logging.yaml.
        format_type: 'console' or 'json' for stderr. Overrides logging.yaml.
            The log file is always JSON.
        config: Logging settings. If None, read from logging.yaml.
    """
    config = config or get_app_config().logging
    level = (level or config.level).upper()
    format_type = format_type or config.format

    processors = _shared_processors()
    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=processors,
    )
    if format_type == "console":
        stderr_formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
            foreign_pre_chain=processors,
        )
    else:
        stderr_formatter = json_formatter

    root = logging.getLogger()
    root.setLevel(getattr(logging, level))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if config.handlers.console.enabled:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(stderr_formatter)
        root.addHandler(stderr_handler)
    if config.handlers.file.enabled:
        root.addHandler(_file_handler(config.handlers.file, json_formatter))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def log_with_source(logger: Any, source: str, level: str, message: str, **kwargs: Any) -> None:
    """
    Log with an explicit ``source`` field.

    Used from snapshot callbacks and polling tasks, which run outside the
    CLI's bound context.

    Raises:
        AttributeError: If level is not a log method name
    """
    getattr(logger, level.lower())(message, source=source, **kwargs)
