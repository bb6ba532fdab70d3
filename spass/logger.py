"""
Logging setup.

Modules log through logging.getLogger(__name__), which puts them under the
"spass" logger. Importing spass never configures logging; call
setup_logging() once from the program's entry point.

Never log passwords, secret bodies, OTP secrets or full hashes.
"""

import logging
import sys
from typing import Union

LOGGER_NAME = "spass"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

logger = logging.getLogger(LOGGER_NAME)

_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(logging.Formatter(LOG_FORMAT))


def setup_logging(level: Union[int, str] = logging.WARNING) -> logging.Logger:
    """
    Attach a stderr handler to the "spass" logger and set its level.

    Safe to call more than once; the handler is only added the first time.
    """
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level: {name}")

    if _handler not in logger.handlers:
        logger.addHandler(_handler)

    logger.setLevel(level)
    return logger
