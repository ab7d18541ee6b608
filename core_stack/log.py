"""Structured logging for core_stack.

Modules use this as ``from core_stack import log`` and call the level
functions directly::

    log.debug("Stack '{}' does not exist", name)
    log.info("Stack update complete", details=outputs)

Messages use ``{}`` placeholders.  Keyword arguments become structured
fields on the log line.  The stack being reconciled is bound with
:func:`set_identity` so every line emitted by a worker carries it.
"""

from typing import Any
import logging
import sys

import structlog

LOGGER_NAME = "core_stack"

IDENTITY_KEY = "identity"


def setup(level: str | int = "INFO", json: bool = False) -> None:
    """
    Configure structlog to render to stderr.  The stdlib root logger is left alone.

    :param level: Minimum level name or number, e.g. ``"DEBUG"``
    :type level: str | int
    :param json: Render JSON lines instead of the console format
    :type json: bool
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


def set_identity(identity: str) -> None:
    """Bind ``identity`` to every log line emitted from the current context."""
    structlog.contextvars.bind_contextvars(**{IDENTITY_KEY: identity})


def reset_identity() -> None:
    structlog.contextvars.unbind_contextvars(IDENTITY_KEY)


def get_logger() -> Any:
    return structlog.get_logger(LOGGER_NAME)


def _format(message: str, args: tuple) -> str:
    if not args:
        return message
    if "{" not in message:
        return " ".join([message, *[str(a) for a in args]])
    try:
        return message.format(*args)
    except (IndexError, KeyError, ValueError):
        return " ".join([message, *[str(a) for a in args]])


def trace(message: str, *args, **kwargs) -> None:
    # structlog has no TRACE level; trace lines are emitted as debug
    get_logger().debug(_format(message, args), trace=True, **kwargs)


def debug(message: str, *args, **kwargs) -> None:
    get_logger().debug(_format(message, args), **kwargs)


def info(message: str, *args, **kwargs) -> None:
    get_logger().info(_format(message, args), **kwargs)


def warning(message: str, *args, **kwargs) -> None:
    get_logger().warning(_format(message, args), **kwargs)


def error(message: str, *args, **kwargs) -> None:
    get_logger().error(_format(message, args), **kwargs)


def exception(message: str, *args, **kwargs) -> None:
    get_logger().exception(_format(message, args), **kwargs)
