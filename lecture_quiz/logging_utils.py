"""Centralized logging configuration for the Lecture Quiz client."""

from __future__ import annotations

import logging
from logging import Logger
from pathlib import Path
from typing import Iterable


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "lecture_quiz.log"

# Handlers installed here are replaced, not stacked, on reconfiguration.
_OWNED_MARKER = "_lecture_quiz_owned"


def configure_logging(level: int = logging.INFO, *, handlers: Iterable[logging.Handler] | None = None) -> Logger:
    """Configure the root logger with sensible defaults."""

    logger = logging.getLogger()
    logger.setLevel(level)

    if handlers is None:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        handlers = [stream_handler]

    for existing in list(logger.handlers):
        if getattr(existing, _OWNED_MARKER, False):
            logger.removeHandler(existing)
            existing.close()

    for handler in handlers:
        setattr(handler, _OWNED_MARKER, True)
        logger.addHandler(handler)

    return logger


def get_log_file_path(storage_root: Path) -> Path:
    """Return the default path for the application log file."""

    return storage_root / LOG_FILE_NAME


def prepare_logging(storage_root: Path, *, verbose: bool = False) -> Logger:
    """Send log records to the storage log file and, when *verbose*, to stderr.

    The command-line views draw on stdout, so the console handler is opt-in and
    only shows warnings unless *verbose* is set.
    """

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    file_handler = logging.FileHandler(get_log_file_path(storage_root), encoding="utf-8")
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)

    return configure_logging(
        logging.DEBUG if verbose else logging.INFO,
        handlers=[file_handler, stream_handler],
    )


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "LOG_FILE_NAME",
    "configure_logging",
    "get_log_file_path",
    "prepare_logging",
]
