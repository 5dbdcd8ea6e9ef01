"""Structured logging configuration for the Skills monitoring engine.

Uses structlog with context variables, ISO timestamps, and console (or
JSON) rendering. Provides get_logger() for named loggers and
configure_logging() for one-time setup.
"""

import logging

import structlog

_configured = False


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Configure structlog processors once.

    Safe to call multiple times -- only the first invocation takes effect.
    Arguments left as ``None`` fall back to the ``log_level`` and
    ``log_json`` settings.
    """
    global _configured
    if _configured:
        return

    if level is None or json_output is None:
        from skills_monitoring.core.config import settings

        level = level or settings.log_level
        json_output = settings.log_json if json_output is None else json_output

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    min_level = logging.getLevelName(level.upper())
    if not isinstance(min_level, int):
        min_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a bound logger with the given name.

    Ensures logging is configured before returning.

    Args:
        name: Logger name, typically the module name.

    Returns:
        A structlog BoundLogger instance bound with the given name.
    """
    configure_logging()
    return structlog.get_logger(logger_name=name)
