import logging
import sys

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def setup_logging(name: str = "clinicqueue", level: str = settings.LOG_LEVEL) -> logging.Logger:
    """
    Configure the application logger once. Queue refresh ticks log at
    DEBUG; set LOG_LEVEL=DEBUG to see them.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False

    return logger

logger = setup_logging()
