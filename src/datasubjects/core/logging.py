# src/datasubjects/core/logging.py
"""Structured logging for datasubjects.

Log records go to stderr so an export written to stdout stays valid JSON.
structlog events and stdlib records (SQLAlchemy, typer) share one
ProcessorFormatter, so both come out in the same format.

Every erasure and export binds its operation name and visit count through
bind_operation(); events logged inside that block carry both fields without
repeating them at each call site. Individual visit ids are never logged.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

from datasubjects.core.config import LoggingSettings

# SQLAlchemy's engine logger echoes bound parameters, i.e. visit ids.
# Clamped even when running at DEBUG.
_SQL_LOGGERS: tuple[str, ...] = ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool")


def effective_settings(
    settings: LoggingSettings | None = None,
    *,
    verbose: bool = False,
    json_logs: bool = False,
) -> LoggingSettings:
    """Merge command line flags over the settings file.

    --verbose forces DEBUG and --json-logs forces JSON output; without the
    flags the settings file decides, and without settings the defaults apply.
    """
    base = settings if settings is not None else LoggingSettings()
    update: dict[str, Any] = {}
    if verbose:
        update["level"] = "DEBUG"
    if json_logs:
        update["json_output"] = True
    return base.model_copy(update=update) if update else base


def _renderer(json_output: bool) -> Any:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(
    settings: LoggingSettings | None = None,
    *,
    verbose: bool = False,
    json_logs: bool = False,
) -> LoggingSettings:
    """Configure structlog and stdlib logging.

    Safe to call more than once; each call replaces the root handler.

    Returns:
        The settings actually applied after merging the flags
    """
    applied = effective_settings(settings, verbose=verbose, json_logs=json_logs)
    level = logging.getLevelNamesMapping()[applied.level]

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                _renderer(applied.json_output),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    for name in _SQL_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return applied


@contextmanager
def bind_operation(operation: str, visit_count: int) -> Iterator[None]:
    """Tag every event logged inside the block with the operation and visit count."""
    with structlog.contextvars.bound_contextvars(operation=operation, visit_count=visit_count):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
