"""Package-wide logging for sitesurvey.

Every module logs through ``get_logger(__name__)``. Records flow to one
``sitesurvey`` logger that owns the only handler (stdout by default) and also
propagate to the Python root logger, which is where pytest's ``caplog``
listens. Levels may be given as ``logging`` constants or as names such as
``"debug"``.
"""

import logging
import sys
from typing import Optional, Union

ROOT_LOGGER_NAME = "sitesurvey"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

Level = Union[int, str]

_configured = False


def _package_logger() -> logging.Logger:
    return logging.getLogger(ROOT_LOGGER_NAME)


def _as_level(level: Level) -> int:
    """Translate a level name like ``"warning"`` to its numeric value."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def setup_root_logger(
    level: Level = logging.INFO,
    format_string: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
) -> None:
    """Install the package handler once.

    Later calls are no-ops until :func:`reset_logging` runs, so importing
    modules never stacks handlers.

    Args:
        level: Initial level for the package logger.
        format_string: Record format; defaults to ``DEFAULT_FORMAT``.
        handler: Destination; defaults to a stream handler on stdout.
    """
    global _configured
    if _configured:
        return

    package = _package_logger()
    package.handlers.clear()
    package.setLevel(_as_level(level))

    target = handler if handler is not None else logging.StreamHandler(sys.stdout)
    target.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    package.addHandler(target)
    package.propagate = True

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` under the package configuration.

    The logger keeps no level of its own, so it follows the ``sitesurvey``
    logger.
    """
    setup_root_logger()
    logger = logging.getLogger(name)
    logger.setLevel(logging.NOTSET)
    return logger


def set_global_log_level(level: Level) -> None:
    """Apply ``level`` to the package logger and its handlers.

    Raises:
        ValueError: If ``level`` is an unknown level name.
    """
    setup_root_logger()
    numeric = _as_level(level)
    package = _package_logger()
    package.setLevel(numeric)
    for handler in package.handlers:
        handler.setLevel(numeric)


def enable_debug_logging() -> None:
    set_global_log_level(logging.DEBUG)


def disable_debug_logging() -> None:
    set_global_log_level(logging.INFO)


def reset_logging() -> None:
    """Drop the package handler and level; used by tests."""
    global _configured
    _configured = False
    package = _package_logger()
    package.handlers.clear()
    package.setLevel(logging.NOTSET)


setup_root_logger()
