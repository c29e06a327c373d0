"""Logging configuration module."""

from logging import (
    CRITICAL,
    DEBUG,
    ERROR,
    INFO,
    WARNING,
    Handler,
    Logger,
    StreamHandler,
    getLogger,
)
from typing import cast

import structlog
from structlog import contextvars, dev, processors, stdlib
from structlog.processors import JSONRenderer, TimeStamper, dict_tracebacks
from structlog.stdlib import BoundLogger

# Define log levels
LOG_LEVELS: dict[str, int] = {
    "debug": DEBUG,
    "info": INFO,
    "warning": WARNING,
    "error": ERROR,
    "critical": CRITICAL,
}


def resolve_level(level: str | int) -> int:
    """Translate a level name such as ``"debug"`` into a logging constant."""
    if isinstance(level, int):
        return level
    return LOG_LEVELS.get(level.lower(), INFO)


def configure_logging(
    testing: bool = False,
    level: str | int = INFO,
    json_logs: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        testing: Whether the application is running in test mode
        level: Minimum level for the root and ``app`` loggers
        json_logs: Render JSON lines instead of key/value pairs
    """
    log_level = resolve_level(level)
    use_json = json_logs and not testing

    root_logger: Logger = getLogger()
    root_logger.setLevel(log_level)

    app_logger: Logger = getLogger("app")
    app_logger.setLevel(log_level)
    # app records go to the app handler only, never twice
    app_logger.propagate = False

    handler: Handler = StreamHandler()
    handler.setLevel(log_level)

    shared_processors = [
        contextvars.merge_contextvars,
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        TimeStamper(fmt="%Y-%m-%d %H:%M:%S.%f"),
        dict_tracebacks if use_json else processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            stdlib.filter_by_level,
            *shared_processors,
            stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=stdlib.LoggerFactory(),
        wrapper_class=stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = JSONRenderer() if use_json else dev.ConsoleRenderer(colors=False)
    formatter = stdlib.ProcessorFormatter(
        processors=[stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=shared_processors,
    )
    handler.setFormatter(formatter)

    # Clear existing handlers to prevent duplicates
    root_logger.handlers = []
    app_logger.handlers = []

    root_logger.addHandler(handler)
    app_logger.addHandler(handler)


def get_logger(name: str | None = None) -> BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional logger name, defaults to the root logger

    Returns:
        A structured logger instance.
    """
    if name is None:
        return cast(BoundLogger, structlog.get_logger())
    return cast(BoundLogger, structlog.get_logger(name))


def get_request_logger(request_id: str | None = None) -> BoundLogger:
    """Get a logger with request context.

    Args:
        request_id: Optional request ID to bind to logger

    Returns:
        Configured logger with request context
    """
    logger: BoundLogger = get_logger()
    if request_id:
        logger = logger.bind(request_id=request_id)
    return logger
