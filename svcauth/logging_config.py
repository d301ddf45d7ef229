from __future__ import annotations

import logging

from svcauth.settings import get_settings

LOGGER_NAME = "svcauth"


def configure_logging(level: str | None = None, handler: logging.Handler | None = None) -> logging.Logger:
    """
    Set up the ``svcauth`` logger tree for a host application.

    Notes:
    - ``level`` falls back to ``SVCAUTH_LOG_LEVEL`` (via settings).
    - ``handler`` is attached once; calling again with the same handler is a no-op.
    - Without a handler, records propagate to whatever the host configured.
    - Tokens and key material are never logged at any level.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or get_settings().log_level).upper())
    if handler is not None and handler not in logger.handlers:
        logger.addHandler(handler)
    return logger
