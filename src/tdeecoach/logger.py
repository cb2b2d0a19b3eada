"""Logging helpers for the application.

Provides a `get_logger` factory that attaches a shared stream handler, plus
`configure_logging` to set the level and add a rotating file handler from
settings.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_ROOT_NAME = "tdeecoach"

_formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

_stream_handler = logging.StreamHandler()
_stream_handler.setFormatter(_formatter)

_file_handler: Optional[RotatingFileHandler] = None


def _root_logger() -> logging.Logger:
    root = logging.getLogger(_ROOT_NAME)
    if not root.handlers:
        root.setLevel(logging.WARNING)
        root.addHandler(_stream_handler)
    return root


def get_logger(name: str = _ROOT_NAME) -> logging.Logger:
    """Return a logger under the package root.

    Handlers live on the ``tdeecoach`` root logger only, so calling this from
    every module never adds duplicate handlers.
    """
    _root_logger()
    if name != _ROOT_NAME and not name.startswith(_ROOT_NAME + "."):
        name = f"{_ROOT_NAME}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str = "WARNING", log_file: Optional[Path] = None) -> None:
    """Set the package log level and optionally log to a rotating file.

    Args:
        level: Level name such as "DEBUG" or "INFO"
        log_file: If set, also write logs to this file (5 MB x 3 backups)
    """
    global _file_handler

    root = _root_logger()
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    root.setLevel(numeric)

    if _file_handler is not None:
        root.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _file_handler = RotatingFileHandler(
            log_file, maxBytes=5 * 1024 * 1024, backupCount=3
        )
        _file_handler.setFormatter(_formatter)
        root.addHandler(_file_handler)
