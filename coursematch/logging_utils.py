from __future__ import annotations

import logging
import sys
from typing import Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once.

    If handlers already exist on the root logger, only the level is updated,
    so calling this repeatedly (CLI + tests) never duplicates output.
    """
    if level is None:
        from coursematch.config import settings

        level = settings.log_level

    lvl = getattr(logging, str(level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(lvl)

    if root_logger.handlers:
        return

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(lvl)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
