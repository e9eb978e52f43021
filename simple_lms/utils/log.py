import logging
import sys
from typing import Optional

from simple_lms.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that are chatty at DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncio", "sqlalchemy.engine")


def setup_logging(level: Optional[str] = None):
    """
    Configure root logging to stdout.

    Args:
        level: Level name overriding settings.log_level
    """
    level_name = (level or get_settings().log_level).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
