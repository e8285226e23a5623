"""Logging helpers for the operational run log."""

from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
ALLOWED_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_stdio_utf8() -> None:
    """Force stdout/stderr to UTF-8 so tool output never crashes a non-UTF-8 console."""
    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if not callable(reconfigure):
            continue
        try:
            reconfigure(encoding="utf-8", errors="replace")
        except (ValueError, OSError):
            # Detached or already-read streams keep their current encoding.
            continue


def setup_operational_logger(
    run_id: str,
    *,
    log_dir: str | None = None,
    level: str = "INFO",
) -> tuple[logging.Logger, str | None]:
    """
    Configure the logger for one check run.

    Console output goes to stderr at `level`; when `log_dir` is set, a UTF-8 file
    `<run_id>_oplog.log` under it also receives everything at DEBUG.

    Raises:
        OSError: if the log directory or file cannot be created.
    """
    normalized_level = str(level).strip().upper()
    if normalized_level not in ALLOWED_LOG_LEVELS:
        raise ValueError(
            f"Unknown log level: {level!r} (expected one of: {', '.join(ALLOWED_LOG_LEVELS)})"
        )

    formatter = logging.Formatter(LOG_FORMAT)

    # Open the file first: an OSError must leave any existing handlers untouched.
    log_file: str | None = None
    file_handler: logging.FileHandler | None = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"{run_id}_oplog.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)

    logger = logging.getLogger(f"project_check.{run_id}")
    logger.setLevel(logging.DEBUG)
    close_logger(logger)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(getattr(logging, normalized_level))
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    if file_handler is not None:
        logger.addHandler(file_handler)

    logger.propagate = False

    logger.debug("Operational logging initialized for run %s", run_id)
    if log_file:
        logger.debug("Operational log file: %s", log_file)

    return logger, log_file


def close_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
    logger.handlers.clear()
