"""
Service account credentials: mint, fetch and cache bearer tokens.

Use ``ServiceAccountConfig.from_service_account_file(path)`` (or one of the
other constructors) and wrap it in a ``ServiceAccountCredential``. Call
``get_access_token(uri)`` for access tokens and ``get_identity_token(audience)``
for OIDC identity tokens. ``svcauth.configure_logging()`` sets the log level
for everything under ``svcauth.service_account``.
"""

from .auth import ServiceAccountAuth
from .cache import CachedToken, TokenCache
from .clock import Clock, SystemClock
from .config import ServiceAccountConfig, ServiceAccountInfo
from .credential import (
    JWT_CACHE_EXPIRY_WINDOW,
    JWT_CACHE_MAX_SIZE,
    JWT_LIFETIME,
    ServiceAccountCredential,
)
from .errors import ConfigurationError, KeyFormatError, ServiceAccountError, TokenResponseError
from .identity_token import IdentityToken, IdentityTokenOptions
from .retry import BackOffPolicy, RetryCoordinator
from .signer import RsaSigner, load_certificate, load_private_key
from .token_response import TokenResponse

__all__ = [
    "BackOffPolicy",
    "CachedToken",
    "Clock",
    "ConfigurationError",
    "IdentityToken",
    "IdentityTokenOptions",
    "JWT_CACHE_EXPIRY_WINDOW",
    "JWT_CACHE_MAX_SIZE",
    "JWT_LIFETIME",
    "KeyFormatError",
    "RetryCoordinator",
    "RsaSigner",
    "ServiceAccountAuth",
    "ServiceAccountConfig",
    "ServiceAccountCredential",
    "ServiceAccountError",
    "ServiceAccountInfo",
    "SystemClock",
    "TokenCache",
    "TokenResponse",
    "TokenResponseError",
    "load_certificate",
    "load_private_key",
]
