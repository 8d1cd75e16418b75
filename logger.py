import logging
from functools import lru_cache

from config import get_settings


@lru_cache()
def get_logger(name: str) -> logging.Logger:
    """Get a configured logger.

    Each named logger gets a single stream handler and the level from
    ``Settings.LOG_LEVEL``.
    """
    settings = get_settings()
    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
