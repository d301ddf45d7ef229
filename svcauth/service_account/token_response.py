"""Parsed token-endpoint response, held as the credential's remote token state."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

import pydantic
from pydantic import BaseModel, ConfigDict

from .clock import epoch_seconds
from .encoding import decode_payload
from .errors import TokenResponseError

logger = logging.getLogger(__name__)

# Used when the server declares no lifetime and the token carries no exp claim.
DEFAULT_TOKEN_LIFETIME = timedelta(seconds=3600)
# Remote tokens are treated as expired this long before they really are.
TOKEN_REFRESH_WINDOW = timedelta(seconds=300)
# Short-lived tokens are still reused for at least this long (or their whole lifetime if shorter).
MIN_TOKEN_REUSE = timedelta(seconds=60)


class TokenResponse(BaseModel):
    """
    An access or identity token issued by the token endpoint.

    Instances are frozen: a refresh produces a new ``TokenResponse`` rather
    than updating this one.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str | None = None
    id_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    issued_at: datetime

    @classmethod
    def from_http(cls, body: Mapping[str, Any], issued_at: datetime) -> TokenResponse:
        """
        Parse the JSON body of a successful token response.

        Raises TokenResponseError when the body carries neither
        ``access_token`` nor ``id_token``.
        """
        try:
            resp = cls.model_validate({**body, "issued_at": issued_at})
        except pydantic.ValidationError as e:
            raise TokenResponseError("Malformed token response") from e
        if not resp.access_token and not resp.id_token:
            raise TokenResponseError("No access_token or id_token in token response")

        if resp.expires_in is None and resp.id_token:
            expires_in = _lifetime_from_claims(resp.id_token, issued_at)
            if expires_in is not None:
                resp = resp.model_copy(update={"expires_in": expires_in})
        return resp

    @property
    def token(self) -> str:
        return self.access_token or self.id_token or ""

    @property
    def lifetime(self) -> timedelta:
        if self.expires_in is None:
            return DEFAULT_TOKEN_LIFETIME
        return timedelta(seconds=self.expires_in)

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + self.lifetime

    @property
    def refresh_at(self) -> datetime:
        """
        When the token stops being reused.

        Normally ``TOKEN_REFRESH_WINDOW`` before expiry. Tokens too short-lived
        for that window are kept for ``MIN_TOKEN_REUSE``, capped at their
        real lifetime.
        """
        lifetime = self.lifetime
        usable = max(lifetime - TOKEN_REFRESH_WINDOW, min(lifetime, MIN_TOKEN_REUSE))
        return self.issued_at + usable

    def is_expired(self, now: datetime) -> bool:
        return now >= self.refresh_at


def _lifetime_from_claims(id_token: str, issued_at: datetime) -> int | None:
    """Seconds from ``issued_at`` until the token's own ``exp`` claim, if readable."""
    try:
        payload = decode_payload(id_token)
    except ValueError:
        logger.debug("id_token payload unreadable; using default lifetime")
        return None
    exp = payload.get("exp") if isinstance(payload, dict) else None
    if not isinstance(exp, (int, float)):
        return None
    return int(exp) - epoch_seconds(issued_at)
