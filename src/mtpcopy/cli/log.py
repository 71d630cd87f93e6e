"""Logging setup for CLI commands."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import click

LOGGER_NAME = "mtpcopy"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ClickEchoHandler(logging.Handler):
    """Logging handler that writes through click.echo.

    Warnings and errors go to stderr, everything else to stdout.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            click.echo(msg, err=record.levelno >= logging.WARNING)
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Configure the mtpcopy logger.

    Args:
        verbose: Log at DEBUG instead of INFO.
        log_file: Also log to this file (rotating, 5 MB x 3 backups).

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    logger.propagate = False

    console = ClickEchoHandler()
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        fh.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(fh)

    return logger
