"""Exception types raised by the service account credential."""

from __future__ import annotations


class ServiceAccountError(Exception):
    """Base class for errors raised by this package. Never carries key or token material."""


class ConfigurationError(ServiceAccountError, ValueError):
    """Raised at construction/load time when the credential cannot be built."""


class KeyFormatError(ConfigurationError):
    """Raised when private key bytes or a certificate bundle cannot be used for signing."""


class TokenResponseError(ServiceAccountError):
    """Raised when the token endpoint answers 2xx but the body holds no usable token."""
