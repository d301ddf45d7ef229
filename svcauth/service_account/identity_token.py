"""
OIDC identity tokens.

Background for newcomers:
    An identity token asserts "this caller is service account X" to a
    specific audience (for example a Cloud Run URL). Unlike self-signed
    access tokens it must be issued by the identity provider, so it is always
    fetched from the token endpoint.

    ``get_identity_token`` hands back an ``IdentityToken`` handle without
    making a request. The first ``get_token()`` call fetches; later calls
    reuse the token until it is close to expiry, then fetch again. Callers
    racing on the same handle wait for one shared refresh instead of each
    issuing their own request.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from .clock import Clock, as_utc
from .errors import ConfigurationError
from .token_response import TokenResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityTokenOptions:
    """What the identity token should assert."""

    target_audience: str

    def __post_init__(self) -> None:
        if not self.target_audience:
            raise ConfigurationError("target_audience must be set")

    @classmethod
    def from_target_audience(cls, target_audience: str) -> IdentityTokenOptions:
        return cls(target_audience=target_audience)


class IdentityToken:
    """Lazily fetched, self-refreshing identity token for one set of options."""

    def __init__(
        self,
        options: IdentityTokenOptions,
        refresher: Callable[[IdentityTokenOptions], TokenResponse],
        clock: Clock,
    ) -> None:
        self.options = options
        self._refresher = refresher
        self._clock = clock
        self._response: TokenResponse | None = None
        self._lock = threading.Lock()

    @property
    def token_response(self) -> TokenResponse | None:
        return self._response

    def get_token(self) -> str:
        """Return the identity token, fetching it if absent or expired."""
        response = self._response
        if response is not None and not response.is_expired(as_utc(self._clock.now())):
            return _id_token(response)

        with self._lock:
            # Another caller may have refreshed while we waited.
            response = self._response
            if response is None or response.is_expired(as_utc(self._clock.now())):
                logger.debug("Refreshing identity token target_audience=%s", self.options.target_audience)
                response = self._refresher(self.options)
                self._response = response
        return _id_token(response)


def _id_token(response: TokenResponse) -> str:
    return response.id_token or response.token
