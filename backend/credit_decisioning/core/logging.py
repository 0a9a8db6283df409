"""Logging setup for the API process."""

import logging
from typing import Optional

from credit_decisioning.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging once for the process.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL
    """
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
