"""structlog setup shared by the API and AI services.

Learn: structlog.contextvars lets middleware bind a request_id once
and have it show up on every log line emitted while serving that
request, without threading it through function arguments.
"""

import logging

import structlog

_configured = False


def configure_logging(level: str = "INFO", environment: str = "development") -> None:
    """Configure structlog once per process."""
    global _configured
    if _configured:
        return

    renderer = (
        structlog.dev.ConsoleRenderer()
        if environment == "development"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=True,
    )
    _configured = True
