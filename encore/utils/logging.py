"""structlog configuration for Encore.

One processor chain serves both structlog loggers and the stdlib loggers
of aiosqlite, uvicorn and posthog; only the final renderer changes between
console output (development) and JSON lines (production, or
``json_output=True``).

Request-scoped fields (``request_id``, ``caller_id``) are carried in
contextvars by :func:`bind_request_context`, so every event logged while
serving a request is tagged with them without threading a logger through
the services.
"""

import logging
import os
import sys

import structlog

# Libraries whose DEBUG output drowns the application's own events.
_NOISY_LOGGERS = ("aiosqlite", "posthog", "urllib3", "backoff")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Install the processor chain for structlog and the stdlib root logger.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Render JSON lines; also implied by ``APP_ENV=production``.

    Returns:
        The root structlog logger.
    """
    level = log_level.upper()
    shared = _shared_processors()
    if json_output or os.environ.get("APP_ENV", "development") == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.INFO, root.level))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


def bind_request_context(**fields: object) -> None:
    """Attach *fields* to every event logged in the current request."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
