"""
Logging helpers for the Tracewire SDK.

The SDK logs through module-level ``logging.getLogger(__name__)`` loggers under
the ``tracewire`` namespace and leaves handler configuration to the
application, unless debug mode is switched on.
"""

import logging

LOGGER_NAME = "tracewire"
DEBUG_FORMAT = "[Tracewire] %(asctime)s %(levelname)s %(name)s: %(message)s"


def enable_debug_logging() -> logging.Logger:
    """
    Turn on verbose SDK logging.

    Sets the ``tracewire`` logger to DEBUG and attaches a stream handler if the
    application has not configured one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    has_stream_handler = any(
        isinstance(handler, logging.StreamHandler) for handler in logger.handlers
    )
    if not has_stream_handler:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(DEBUG_FORMAT))
        logger.addHandler(handler)

    return logger
