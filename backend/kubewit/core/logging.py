"""Logging setup for processes embedding kubewit"""

import logging
from typing import Optional

from kubewit.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging with the standard format

    Args:
        level: Log level name, e.g. "INFO" or "DEBUG", defaults to LOG_LEVEL
    """
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
