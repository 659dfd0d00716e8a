"""Logging helpers that avoid heavy dependencies."""

from __future__ import annotations

import logging
import os

LOGGER_NAME = "vendor_import"


def setup_operational_logger(
    command: str,
    *,
    log_dir: str | None = None,
    verbose: bool = False,
) -> tuple[logging.Logger, str | None]:
    """
    Configure the operational logger for one command run.

    Logs always go to stderr (INFO, or DEBUG when verbose). When `log_dir` is
    given, a UTF-8 file `<command>_oplog.log` under it records everything at
    DEBUG, including captured tool output.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"{command}_oplog.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    logger.info("Operational logging initialized for %s", command)
    if log_file:
        logger.debug("Operational log file: %s", log_file)

    return logger, log_file
