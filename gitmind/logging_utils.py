"""
Logging setup for gitmind.

The terminal belongs to the TUI, so records go to a file instead of stderr.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbosity: int, log_file: Path | None = None) -> None:
    """
    Configure the root logger based on a verbosity count.

    verbosity == 0 -> WARNING
    verbosity == 1 -> INFO
    verbosity >= 2 -> DEBUG
    """

    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    if log_file is None:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        return

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        filename=str(log_file),
        encoding="utf-8",
    )
