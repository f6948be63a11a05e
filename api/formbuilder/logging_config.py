"""Logging configuration for the API and the admin scripts."""

import logging
import sys

from .config import LOG_LEVEL


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Send records from every module logger to stdout at ``level``."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
