import logging
import logging.handlers
import sys
from pythonjsonlogger.jsonlogger import JsonFormatter

from .config import get_settings

LOGGER_NAME = "kwikq"

formatter = JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")


def setup_logging() -> logging.Logger:
    settings = get_settings()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.LOG_LEVEL.upper())
    logger.propagate = False

    # Avoid adding duplicate handlers on reload
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        file_handler = logging.handlers.RotatingFileHandler(
            settings.LOG_FILE,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
