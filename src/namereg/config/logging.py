"""structlog setup for namereg.

Everything logs to stderr so stdout carries only command results.
The console renderer is the default; ``--log-json`` switches to one JSON
object per line. Records from plain ``logging`` loggers share the same
renderer through structlog's ``ProcessorFormatter``.

Service code logs event names such as ``domain.registered`` through
:func:`get_logger` with keyword context.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog
from structlog.types import Processor

LOGGER_NAME = "namereg"


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool, stream: IO[str]) -> Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Route structlog and stdlib logging to one stderr handler.

    Args:
        verbose: Show DEBUG and INFO from ``namereg`` loggers.
        log_json: Render JSON lines instead of console text.
        stream: Destination, ``sys.stderr`` when omitted.
    """
    out = stream or sys.stderr
    chain = _pre_chain()

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json, out),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.WARNING)
    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if verbose else logging.WARNING)
    # SQLAlchemy echoes every statement at INFO.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> Any:
    """structlog logger for *name*, with *context* bound when given."""
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger
