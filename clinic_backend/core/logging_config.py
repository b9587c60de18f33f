import logging
import sys

from clinic_backend.core import config

LOGGER_NAME = "clinic_backend"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> logging.Logger:
    """
    Configure the application logger with a single stdout handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or config.LOG_LEVEL).upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
