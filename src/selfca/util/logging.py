"""
Event-style structured logging on top of structlog.

Loggers returned by :func:`getLogger` accept an event name followed by
arbitrary keyword fields::

    logger.debug("certificate_signed", serial_number=serial, is_ca=True)

Events are rendered in logfmt and handed to the standard library logger of the
same name, so handlers and levels configured on ``selfca`` apply as usual.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import structlog

ROOT_LOGGER_NAME = "selfca"

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(key_order=["event"], bool_as_flag=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def getLogger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    # Leave an application's own structlog setup alone
    if not structlog.is_configured():
        configure_structlog()
    return structlog.get_logger(name or ROOT_LOGGER_NAME)


def parse_log_level(log_level: Union[str, int]) -> int:
    """Map a level name such as ``"debug"`` to its numeric value."""
    if isinstance(log_level, int):
        return log_level
    name = str(log_level).strip().lower()
    if name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {log_level} (expected one of {', '.join(LOG_LEVELS)})")
    return getattr(logging, name.upper())


def enable_logging(log_level: Union[str, int] = "warning", fmt: str = DEFAULT_FORMAT) -> None:
    """
    Attach a stream handler to the package logger and set its level.

    Calling this more than once only adjusts the level.
    """
    level = parse_log_level(log_level)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    if not any(getattr(h, "_selfca_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler._selfca_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
