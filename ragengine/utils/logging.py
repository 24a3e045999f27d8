"""Structured logging setup using structlog.

One shared processor chain (context vars, log level, timestamps, stack info)
feeds either a coloured ConsoleRenderer for local development or a
JSONRenderer for production.  The renderer follows ``APP_ENV`` (default
``"development"``) unless ``json_output`` forces JSON.

Standard-library ``logging`` is routed through the same formatter so httpx
and uvicorn output matches the engine's own log lines.

Request-scoped context (caller identity, collection id) is attached with
:func:`bind_request_context` and merged into every event by
``merge_contextvars``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

import structlog


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
    cache_loggers: bool = True,
) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output.  When False, JSON is used only when
                     ``APP_ENV`` is ``"production"``.
        stream: Where log lines are written.  Defaults to stdout; the CLI
                passes stderr so command output stays machine-readable.
        cache_loggers: Let structlog cache loggers on first use.  Disable
                       when the process may reconfigure the stream later.

    Returns:
        A configured structlog BoundLogger.
    """
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"
    out = stream if stream is not None else sys.stdout

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=out.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=cache_loggers,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


def bind_request_context(**values: object) -> None:
    """Bind request-scoped key/values (e.g. ``caller_id``) into log context.

    ``None`` values are skipped so optional context does not clutter events.
    """
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in values.items() if value is not None}
    )


def clear_request_context(*keys: str) -> None:
    """Remove request-scoped keys bound by :func:`bind_request_context`."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()
