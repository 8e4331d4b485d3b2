"""Structured logging for changeplan.

Every module logs through :func:`get_logger`, which wraps a stdlib logger
under the ``changeplan`` hierarchy. Until :func:`configure_logging` runs,
events follow the stdlib defaults: nothing below WARNING is emitted, and
nothing is ever written to stdout. Library callers therefore see no
output from a plan computation unless they ask for it.

:func:`configure_logging` (called by the CLI) attaches one stderr handler
to the ``changeplan`` logger with either a console or a JSON renderer.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

ROOT_LOGGER = "changeplan"

# Applied to every event before it reaches the stdlib handler.
_PRE_CHAIN: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


def _renderer(json_log: bool, stream: TextIO) -> structlog.types.Processor:
    if json_log:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route changeplan's log events to ``stream`` (stderr by default).

    Only the ``changeplan`` logger is touched; the root logger and other
    libraries' handlers are left alone. Calling it again replaces the
    previous handler.

    Args:
        verbose: Show debug events (propagation passes, escalations).
        quiet: Only show warnings and errors.
        json_log: Emit one JSON object per line.
        stream: Where to write; stdout is never used by default.
    """
    if stream is None:
        stream = sys.stderr
    level = logging.WARNING if quiet else logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_PRE_CHAIN,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_log, stream),
            ],
        )
    )

    root = logging.getLogger(ROOT_LOGGER)
    for old in root.handlers[:]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_PRE_CHAIN,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = ROOT_LOGGER) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the stdlib logger ``name``."""
    return structlog.wrap_logger(
        logging.getLogger(name), wrapper_class=structlog.stdlib.BoundLogger
    )


__all__ = [
    "ROOT_LOGGER",
    "configure_logging",
    "get_logger",
]
