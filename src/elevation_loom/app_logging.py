"""Logging configuration helpers."""

import logging

# The Supabase client logs every HTTP request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure the package logger and quiet the HTTP client loggers.

    ``level`` may be a number or a level name such as ``"DEBUG"``; it is
    applied on every call, the stream handler is installed only once.
    """
    logger = logging.getLogger("elevation_loom")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
