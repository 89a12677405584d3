"""Logging configuration for the converter service."""

from __future__ import annotations

import logging
import os
import sys


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric = getattr(logging, log_level, logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(numeric)

    # Replace our own handler on repeated startup (tests, reload).
    for handler in list(logger.handlers):
        if getattr(handler, "_slides_handler", False):
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    console_handler._slides_handler = True  # type: ignore[attr-defined]
    logger.addHandler(console_handler)
