"""Structured diagnostic logging.

Core modules log key/value events through structlog:

    log = get_logger(__name__)
    log.debug("cache_miss", path=path, revision=revision.id)

Nothing is configured on import. Entry points call `configure_logging` once;
until then structlog's defaults apply. Output goes to stderr so stdout stays
clean for command output.
"""

from __future__ import annotations

import logging
import sys

import structlog

__all__ = ["configure_logging", "get_logger"]


def configure_logging(*, verbose: bool = False, quiet: bool = False, json_log: bool = False) -> None:
    """Route structlog events through the stdlib root logger on stderr.

    Args:
        verbose: Emit debug events.
        quiet: Only warnings and errors.
        json_log: One JSON object per line instead of colored console output.
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_log:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def get_logger(name: str = "monorel") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
