"""
Logging setup.
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(log_path: Optional[str] = None, log_level: str = "INFO") -> None:
    """
    Configure the root logger.

    Logs always go to stderr; when `log_path` is given they are also written
    to that file (its directory is created if needed).
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, log_level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
