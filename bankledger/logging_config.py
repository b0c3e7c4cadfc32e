"""
Logging configuration for the ledger.

Every module logs through `logging.getLogger(__name__)`, so all records land
under the "bankledger" logger hierarchy. setup_logging() attaches a single
stream handler to that root once, at application start.
"""

import logging

LOGGER_NAME = "bankledger"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the "bankledger" logger.

    Existing handlers are removed first so repeated calls (e.g. reloads in
    development) don't produce duplicate lines.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    return logger
