"""Logging setup shared by the app and its modules."""
import logging
import sys
from typing import Optional

from oilstock.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    global _configured
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    # SQL echo goes through its own logger
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.sql_echo else logging.WARNING
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
