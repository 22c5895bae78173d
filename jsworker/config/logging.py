"""
Logging configuration for jsworker.

jsworker is embedded in host processes that usually own the root logger, so
setup_logging() attaches handlers to the "jsworker" logger only.
"""
import logging
import sys
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Marks handlers installed here so repeated calls replace rather than stack them.
_HANDLER_ATTR = "_jsworker_handler"


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return LEVELS.get(level.upper(), logging.INFO)


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Send jsworker's log records to stdout and, optionally, a file.

    Worker execution threads are named ``jsworker-<id>_0``, so the default
    format includes the thread name to tell workers apart.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or logging constant. Unknown
            names fall back to INFO.
        log_file: Also append records to this file.
        format_string: Record format, DEFAULT_FORMAT if unset.
        propagate: Also pass records on to the host's root handlers.

    Returns:
        The configured "jsworker" logger.
    """
    log_level = _resolve_level(level)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logger = logging.getLogger("jsworker")
    for handler in [h for h in logger.handlers if getattr(h, _HANDLER_ATTR, False)]:
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_ATTR, True)
        logger.addHandler(handler)

    logger.setLevel(log_level)
    logger.propagate = propagate
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)
    return logger
