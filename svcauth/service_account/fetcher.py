"""
Exchange a signed assertion for a token at the token endpoint.

Background for newcomers:
    Server-issued tokens use the JWT bearer grant (RFC 7523). The service
    account signs a short-lived JWT (the *assertion*) naming the token
    endpoint as its audience, then POSTs it form-encoded:

        grant_type=urn:ietf:params:oauth:grant-type:jwt-bearer
        assertion=<signed JWT>

    The endpoint replies with JSON holding ``access_token`` (OAuth2) or
    ``id_token`` (OIDC, when the assertion carried ``target_audience``) and
    usually ``expires_in``.
"""

from __future__ import annotations

import logging

from .clock import Clock, as_utc
from .errors import TokenResponseError
from .retry import RetryingTransport
from .token_response import TokenResponse

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class TokenFetcher:
    """Performs the assertion exchange over a retrying transport."""

    def __init__(self, transport: RetryingTransport, clock: Clock) -> None:
        self._transport = transport
        self._clock = clock

    def fetch(self, url: str, assertion: str) -> TokenResponse:
        """
        POST ``assertion`` to ``url`` and parse the result.

        Transport failures and non-2xx statuses propagate as the ``requests``
        exception (``HTTPError`` for a status). A 2xx body without a token
        raises TokenResponseError.
        """
        issued_at = as_utc(self._clock.now())
        resp = self._transport.post(url, data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion})
        if resp.status_code >= 400:
            logger.info("Token endpoint returned status=%s", resp.status_code)
        resp.raise_for_status()
        try:
            body = resp.json()
        except ValueError as e:
            raise TokenResponseError("Token response is not JSON") from e
        if not isinstance(body, dict):
            raise TokenResponseError("Token response is not a JSON object")
        token = TokenResponse.from_http(body, issued_at)
        logger.debug("Fetched token from endpoint expires_in=%s", token.expires_in)
        return token

