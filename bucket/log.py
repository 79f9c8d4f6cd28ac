import logging
from typing import Optional, Union

from .config import get_config

LOGGER_NAME = "bucket"

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def configure_logging(level: Optional[Union[int, str]] = None) -> logging.Logger:
    """Attach a stream handler to the package logger (scripts only)."""
    log = logging.getLogger(LOGGER_NAME)
    if level is None:
        level = get_config().log_level
    log.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in log.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s: %(message)s"))
        log.addHandler(handler)
    return log
