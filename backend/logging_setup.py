import logging
from datetime import datetime

from backend.config import settings

LOGGER_NAME = "cookie_manager"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"


def setup_logging() -> logging.Logger:
    """
    Configure dual logging: console (LOG_LEVEL, INFO by default) and a
    daily log file (DEBUG).
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Avoid adding duplicate handlers on reload
    if logger.handlers:
        return logger

    ch = logging.StreamHandler()
    ch.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    ch.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(ch)

    try:
        settings.logs_dir.mkdir(parents=True, exist_ok=True)
        log_filename = settings.logs_dir / f"cookie_manager_{datetime.now().strftime('%Y-%m-%d')}.log"
        fh = logging.FileHandler(log_filename, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(fh)
    except OSError as e:
        logger.warning(f"File logging disabled: {e}")

    logger.propagate = False
    return logger
