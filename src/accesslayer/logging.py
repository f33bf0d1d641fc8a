"""structlog setup shared by the CLI and library callers."""

import logging
from typing import Any

import structlog

_RENDERERS = {
    "json": structlog.processors.JSONRenderer,
    "console": structlog.dev.ConsoleRenderer,
}


def configure_logging(level: int | str = logging.INFO, fmt: str = "json") -> None:
    """Route structlog events through stdlib logging at ``level``.

    ``fmt`` picks the final renderer: ``json`` for one object per line,
    ``console`` for the coloured development output.
    """
    if fmt not in _RENDERERS:
        raise ValueError(f"unknown log format: {fmt!r}")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _RENDERERS[fmt](),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=level, format="%(message)s")


def bind_context(**fields: Any) -> structlog.stdlib.BoundLogger:
    """Logger carrying request fields (action, resource, subject, ...)."""
    return structlog.get_logger("accesslayer").bind(**fields)
