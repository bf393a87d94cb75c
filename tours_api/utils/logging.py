"""
Logging setup for the Tours API.

configure_logging() is called once from tours_api/main.py with LOG_LEVEL;
modules then use get_logger(__name__) or logging.getLogger(__name__).

Never log:
- passwords, password hashes or confirmPassword values
- JWTs or password reset tokens (plain or hashed)
- SMTP credentials or the MongoDB connection string

Fine to log: document ids, counts, query shapes (filter / sort / projection),
startup and shutdown events, messages from the error handlers.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger for the process.

    Args:
        level: Level name, e.g. "INFO" or "DEBUG"; unknown names fall back to INFO
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Return the logger for `name`.

    The level is inherited from the root logger unless `level` is given. A
    stream handler is attached only when nothing has configured logging yet
    (e.g. a module imported from a script), so messages are never printed
    twice.
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)

    if not logger.handlers and not logging.getLogger().handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(stream)

    return logger
