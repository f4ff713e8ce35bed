"""Logger capability passed explicitly through the flows.

The browser session, the navigation history and the login/logout flows all
take a ``logger`` argument instead of reaching for a process-wide logger.
``None`` means "not interested" and resolves to :data:`NOOP_LOGGER`, so no
call site has to check for a missing logger.

Loggers for the CLI and the HTTP server write to stderr through
:class:`rich.logging.RichHandler`, keeping stdout free for data.
"""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "tokget"


def _new_noop_logger() -> logging.Logger:
    # Built outside the logging manager so nobody can reconfigure it by name.
    logger = logging.Logger(f"{_LOGGER_NAME}.noop", level=logging.CRITICAL + 1)
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger


NOOP_LOGGER = _new_noop_logger()
"""A logger that discards every record."""


def resolve_logger(logger: Optional[logging.Logger]) -> logging.Logger:
    """Return *logger*, or :data:`NOOP_LOGGER` when it is ``None``."""
    return logger if logger is not None else NOOP_LOGGER


def _stderr_logger(name: str, level: int, no_color: bool) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True, no_color=no_color),
            show_time=False,
            show_path=False,
            markup=False,
            rich_tracebacks=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger


def new_console_logger(verbose: bool, no_color: bool = False) -> logging.Logger:
    """Return the logger used by the ``login`` and ``logout`` commands.

    Args:
        verbose: When False the flows stay silent and :data:`NOOP_LOGGER`
            is returned; when True every debug record is printed to stderr.
        no_color: Disable Rich colour output.
    """
    if not verbose:
        return NOOP_LOGGER
    return _stderr_logger(_LOGGER_NAME, logging.DEBUG, no_color)


def new_server_logger(verbose: bool, no_color: bool = False) -> logging.Logger:
    """Return the logger used by the HTTP server.

    The server always reports its own lifecycle and failed requests at INFO;
    ``verbose`` adds the flows' debug records.
    """
    level = logging.DEBUG if verbose else logging.INFO
    return _stderr_logger(f"{_LOGGER_NAME}.server", level, no_color)
