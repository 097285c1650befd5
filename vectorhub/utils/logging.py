"""Structured logging for VectorHub.

Every module logs through structlog with snake_case event names and keyword
context (``logger.info("webhook_delivered", webhook_id=..., attempts=...)``).
Local runs get a coloured console renderer; production (``APP_ENV=production``
or ``json_output=True``) gets one JSON object per line.

The stdlib root logger is routed through the same processor chain so that
uvicorn, httpx and pymongo records look like ours.
"""

import logging
import os
import sys

import structlog

# Third-party loggers that are only interesting at WARNING and above.
_NOISY_LOGGERS = ("httpx", "httpcore", "pymongo", "aiosqlite")


def _pick_renderer(json_output: bool) -> structlog.types.Processor:
    if json_output or os.environ.get("APP_ENV", "development") == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Install the structlog configuration and route stdlib logging through it.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Render JSON regardless of ``APP_ENV``.

    Returns:
        The root structlog logger.
    """
    level = logging.getLevelName(log_level.upper())
    renderer = _pick_renderer(json_output)
    chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    structlog.configure(
        processors=chain + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    stdlib_handler = logging.StreamHandler(sys.stdout)
    stdlib_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [stdlib_handler]
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, level))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
