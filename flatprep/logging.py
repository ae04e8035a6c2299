"""Logging utilities for flatprep commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO

from .errors import WriteFailure

_LOGGER_NAME = "flatprep"
_CONSOLE_FORMAT = "[flatprep:%(component)s] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(component)s: %(message)s"


class _ComponentFilter(logging.Filter):
    """Tag records with the pipeline stage that emitted them (manifest, override, ...)."""

    def filter(self, record: logging.LogRecord) -> bool:
        _, _, component = record.name.partition(".")
        record.component = component.split(".")[0] if component else "run"
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a stage logger such as ``flatprep.manifest``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Path | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Send flatprep output to the console, and to ``log_file`` for build archives.

    Safe to call again (the CLI does once the config names a log file): earlier
    handlers are closed and replaced.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    # The file sink keeps debug detail even when the console does not.
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    component_filter = _ComponentFilter()
    stream_handler = logging.StreamHandler(stream)
    stream_handler.setLevel(level)
    stream_handler.addFilter(component_filter)
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            raise WriteFailure(log_file, exc) from exc
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(component_filter)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
