# src/hlactions/core/logger.py

import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Attaches a console handler to the ``hlactions`` logger tree (once).
    Library modules only call ``logging.getLogger(__name__)``; scripts call this.
    """
    logger = logging.getLogger("hlactions")
    logger.setLevel(level)
    if not logger.handlers:
        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    return logger
