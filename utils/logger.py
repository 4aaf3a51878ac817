"""
utils/logger.py
---------------
Logging setup shared by the database layer.

`get_logger(__name__)` is all most modules need; it configures logging
from LOG_LEVEL / DRIVER_LOG_LEVEL on first use. Entry points that want a
different level call `configure_logging()` themselves before that.
"""

import logging
import sys
from typing import Optional, TextIO

import config

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_handler: Optional[logging.Handler] = None


def _level(name: str, default: int) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def configure_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """
    Install the stdout handler on the root logger and set levels.

    Calling it again replaces the previous handler rather than adding a
    second one. Unknown level names fall back to INFO (WARNING for the
    driver).

    Args:
        level: Root level name; defaults to config.LOG_LEVEL.
        stream: Where to write; defaults to sys.stdout.
    """
    global _handler
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(stream or sys.stdout)
    _handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    root.addHandler(_handler)
    root.setLevel(_level(level or config.LOG_LEVEL, logging.INFO))
    logging.getLogger("asyncpg").setLevel(_level(config.DRIVER_LOG_LEVEL, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Named logger; configures logging first if nothing has yet."""
    if _handler is None:
        configure_logging()
    return logging.getLogger(name)
