"""structlog on top of stdlib logging, so library records share one renderer."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

LEVEL_ENV = "PULSEBOARD_LOG_LEVEL"
FORMAT_ENV = "PULSEBOARD_LOG_FORMAT"

# Chatty third-party loggers held at WARNING whatever the app level is.
QUIET_LOGGERS = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "aiosqlite",
    "httpx",
    "httpcore",
)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging() -> None:
    """Route structlog and stdlib records through one stdout handler.

    ``PULSEBOARD_LOG_LEVEL`` sets the level of the ``pulseboard`` loggers
    (default INFO); ``PULSEBOARD_LOG_FORMAT`` is ``console`` or ``json``.
    """
    level = os.environ.get(LEVEL_ENV, "INFO").upper()
    processors = _shared_processors()

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    loggers: dict[str, dict[str, str]] = {name: {"level": "WARNING"} for name in QUIET_LOGGERS}
    loggers["pulseboard"] = {"level": level}
    loggers["uvicorn.error"] = {"level": "INFO"}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "pulseboard": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(os.environ.get(FORMAT_ENV, "console").lower()),
                    ],
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "pulseboard",
                },
            },
            "root": {"handlers": ["stdout"], "level": level},
            "loggers": loggers,
        }
    )
