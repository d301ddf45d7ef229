"""
Service account credential: chooses, mints, fetches and caches bearer tokens.

Background for newcomers:
    A service account can authenticate in two ways.

    1. **Self-signed JWT.** The account signs a JWT itself, naming the target
       service as ``aud`` (or, with ``use_jwt_access_with_scopes``, listing
       the OAuth scopes in ``scope``). No network call is needed. These JWTs
       are cached per target URI (or in a single slot when scoped) and are
       re-minted a few minutes before they expire.
    2. **Server-issued token.** The account signs an *assertion* and trades it
       at the token endpoint for an OAuth2 access token. This is required
       when explicit scopes are configured without JWT-with-scopes, when a
       user is impersonated, or when no target URI is known. The credential
       holds one such token and refetches it when it nears expiry.

    Identity tokens (OIDC) are always server-issued; see ``identity_token``.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Iterable

from .cache import CachedToken, TokenCache
from .claims import JwtClaims
from .clock import as_utc, epoch_seconds, from_epoch_seconds
from .config import ServiceAccountConfig
from .encoding import JWT_HEADER, encode
from .fetcher import TokenFetcher
from .identity_token import IdentityToken, IdentityTokenOptions
from .retry import DEFAULT_MAX_ATTEMPTS, RetryCoordinator, RetryingTransport
from .token_response import TokenResponse

logger = logging.getLogger(__name__)

JWT_LIFETIME = timedelta(seconds=3600)
JWT_CACHE_EXPIRY_WINDOW = timedelta(seconds=300)
JWT_CACHE_MAX_SIZE = 1000

# Every scoped self-signed JWT lives under this one key, whatever the target URI.
SCOPED_JWT_CACHE_KEY = object()


class ServiceAccountCredential:
    """
    Issues bearer tokens for one service account configuration.

    Each instance owns its JWT cache and remote token state. The ``with_*``
    methods return new instances with their own, empty caches.
    """

    def __init__(self, config: ServiceAccountConfig) -> None:
        self._config = config
        self._jwt_cache = TokenCache(JWT_CACHE_MAX_SIZE)
        self._token: TokenResponse | None = None
        self._token_lock = threading.Lock()
        transport = RetryingTransport(
            config.session,
            RetryCoordinator(config.backoff_policy),
            timeout=config.http_timeout_seconds,
        )
        self._fetcher = TokenFetcher(transport, config.clock)

    @property
    def config(self) -> ServiceAccountConfig:
        return self._config

    @property
    def service_account_id(self) -> str:
        return self._config.service_account_id

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._config.scopes or ()

    @property
    def user(self) -> str | None:
        return self._config.user

    @property
    def has_explicit_scopes(self) -> bool:
        return self._config.has_explicit_scopes

    @property
    def use_jwt_access_with_scopes(self) -> bool:
        return self._config.use_jwt_access_with_scopes

    @property
    def token(self) -> TokenResponse | None:
        """The current server-issued access token, if one has been fetched."""
        return self._token

    @property
    def jwt_cache(self) -> TokenCache:
        return self._jwt_cache

    @property
    def uses_self_signed_jwt(self) -> bool:
        if self._config.user:
            return False
        return not self.has_explicit_scopes or self.use_jwt_access_with_scopes

    # ---- Access tokens ---------------------------------------------------------------

    def get_access_token(self, target_uri: str | None = None) -> str:
        """
        Return a bearer access token for requests to ``target_uri``.

        Self-signed JWTs are returned from the cache while live: two calls for
        the same URI inside the cache window return the very same string
        object. Transport errors from a server fetch propagate unchanged.
        """
        if self._needs_server_token(target_uri):
            return self._get_server_token().token
        return self._get_self_signed_jwt(target_uri).token

    def authorization_header(self, target_uri: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.get_access_token(target_uri)}"}

    def _needs_server_token(self, target_uri: str | None) -> bool:
        if not self.uses_self_signed_jwt:
            return True
        # An unscoped JWT needs an audience; an empty URI is no audience.
        return not target_uri and not self.has_explicit_scopes

    def _now(self) -> datetime:
        return as_utc(self._config.clock.now())

    def _get_self_signed_jwt(self, target_uri: str | None) -> CachedToken:
        now = self._now()
        key = SCOPED_JWT_CACHE_KEY if self.has_explicit_scopes else target_uri
        return self._jwt_cache.get_or_create(key, now, lambda: self._mint_jwt(target_uri, now))

    def _mint_jwt(self, target_uri: str | None, now: datetime) -> tuple[str, datetime]:
        issued_at = epoch_seconds(now)
        lifetime = int(JWT_LIFETIME.total_seconds())
        if self.has_explicit_scopes:
            claims = JwtClaims.self_signed(self.service_account_id, issued_at, lifetime, scopes=self.scopes)
        else:
            claims = JwtClaims.self_signed(self.service_account_id, issued_at, lifetime, audience=target_uri)
        token = encode(JWT_HEADER, claims.to_dict(), self._config.signer)
        logger.debug("Minted self-signed JWT scoped=%s", self.has_explicit_scopes)
        return token, from_epoch_seconds(issued_at) + JWT_LIFETIME - JWT_CACHE_EXPIRY_WINDOW

    def _get_server_token(self) -> TokenResponse:
        with self._token_lock:
            token = self._token
            if token is None or token.is_expired(self._now()):
                token = self._request_access_token()
                self._token = token
            return token

    def _request_access_token(self) -> TokenResponse:
        issued_at = epoch_seconds(self._now())
        claims = JwtClaims(
            issuer=self.service_account_id,
            subject=self._config.user or self.service_account_id,
            issued_at=issued_at,
            expires_at=issued_at + int(JWT_LIFETIME.total_seconds()),
            audience=self._config.token_server_url,
            scope=" ".join(self.scopes) if self.scopes else None,
        )
        assertion = encode(JWT_HEADER, claims.to_dict(), self._config.signer)
        logger.info("Requesting access token from token server user=%s", bool(self._config.user))
        return self._fetcher.fetch(self._config.token_server_url, assertion)

    # ---- Identity tokens -------------------------------------------------------------

    def get_identity_token(self, options: IdentityTokenOptions | str) -> IdentityToken:
        """
        Return a lazy identity-token handle for ``options``.

        No request is made until ``IdentityToken.get_token()`` is called.
        """
        if isinstance(options, str):
            options = IdentityTokenOptions.from_target_audience(options)
        return IdentityToken(options, self._request_identity_token, self._config.clock)

    def _request_identity_token(self, options: IdentityTokenOptions) -> TokenResponse:
        issued_at = epoch_seconds(self._now())
        claims = JwtClaims(
            issuer=self.service_account_id,
            subject=self.service_account_id,
            issued_at=issued_at,
            expires_at=issued_at + int(JWT_LIFETIME.total_seconds()),
            audience=self._config.oidc_token_url,
            target_audience=options.target_audience,
        )
        assertion = encode(JWT_HEADER, claims.to_dict(), self._config.signer)
        logger.info("Requesting identity token target_audience=%s", options.target_audience)
        return self._fetcher.fetch(self._config.oidc_token_url, assertion)

    # ---- Failed responses ------------------------------------------------------------

    def handle_unsuccessful_response(
        self,
        status_code: int,
        attempt: int = 1,
        total_attempts: int = DEFAULT_MAX_ATTEMPTS,
        request_token: str | None = None,
    ) -> bool:
        """
        Decide whether a request that failed with ``status_code`` may be retried.

        Only 401 is handled. With self-signed JWTs nothing is fetched or
        evicted: the next ``get_access_token`` call re-mints if the cached JWT
        has expired by then. With server tokens the cached token is replaced,
        unless ``request_token`` shows the failed request used an older one.
        """
        if status_code != 401 or attempt >= total_attempts:
            return False
        if self.uses_self_signed_jwt:
            logger.debug("401 with self-signed JWT; will re-mint on next use if stale")
            return True

        with self._token_lock:
            current = self._token
            if current is not None and request_token is not None and request_token != current.token:
                return True
            logger.info("401 with server token; refreshing")
            self._token = self._request_access_token()
        return True

    # ---- Derivation ------------------------------------------------------------------

    def _derive(self, **changes: Any) -> ServiceAccountCredential:
        return ServiceAccountCredential(self._config.replace(**changes))

    def with_scopes(self, scopes: Iterable[str] | str | None) -> ServiceAccountCredential:
        return self._derive(scopes=scopes)

    def with_user(self, user: str | None) -> ServiceAccountCredential:
        return self._derive(user=user)

    def with_use_jwt_access_with_scopes(self, use_jwt_access_with_scopes: bool) -> ServiceAccountCredential:
        return self._derive(use_jwt_access_with_scopes=use_jwt_access_with_scopes)

    def with_session(self, session: Any) -> ServiceAccountCredential:
        return self._derive(session=session)

    def __repr__(self) -> str:
        return f"ServiceAccountCredential(service_account_id={self.service_account_id!r}, scopes={self._config.scopes!r})"
