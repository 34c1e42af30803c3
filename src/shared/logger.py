"""Logging setup."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)-7s | %(threadName)-12s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with a compact one-line format.

    Sweeps run on scheduler threads, so the thread name is part of every
    line.

    Args:
        level: DEBUG, INFO, WARNING or ERROR; unknown names fall back to INFO.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format=_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
