"""
svcauth: service account bearer tokens (self-signed JWTs and server-issued tokens).

Call ``configure_logging()`` once at startup to set the ``svcauth`` log level
(``SVCAUTH_LOG_LEVEL`` by default). The library only attaches a ``NullHandler``
itself.
"""

import logging

from svcauth.logging_config import configure_logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = ["configure_logging"]
